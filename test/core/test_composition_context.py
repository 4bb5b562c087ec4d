import pytest

from src.core.transactional_deploy import CompositionContext
from src.model import ResourceHandle
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError
from src.resources.queue import WorkQueue
from src.resources.s3 import Bucket


def test_resources_are_provisioned_in_registration_order(provisioner):
    with CompositionContext("test-stack", provisioner) as ctx:
        bucket = ctx.add_resource("bucket", Bucket(bucket_name="test-storage"))
        ctx.add_resource("queue", WorkQueue(queue_name="test-jobs"), depends_on=[bucket])
        assert provisioner.calls == []

    assert provisioner.calls == [("bucket", "s3"), ("queue", "sqs")]
    assert ctx.order == ["bucket", "queue"]
    assert ctx.progress.total_registered == 2
    assert bucket.output("bucket_name").result() == "test-storage"
    assert ctx.get("queue").depends_on == ["bucket"]


def test_duplicate_resource_id(provisioner):
    with pytest.raises(ConfigurationError):
        with CompositionContext("test-stack", provisioner) as ctx:
            ctx.add_resource("bucket", Bucket(bucket_name="a"))
            ctx.add_resource("bucket", Bucket(bucket_name="b"))

    assert provisioner.calls == []


def test_dependency_must_be_registered_in_same_context(provisioner):
    foreign = ResourceHandle("bucket", "s3", Bucket(bucket_name="foreign"), AsyncValue())

    with pytest.raises(ConfigurationError):
        with CompositionContext("test-stack", provisioner) as ctx:
            ctx.add_resource("queue", WorkQueue(queue_name="test-jobs"), depends_on=[foreign])


def test_unregistered_declaration_is_rejected(provisioner):
    class ArchiveBucket(Bucket):
        pass

    with pytest.raises(ConfigurationError) as excinfo:
        with CompositionContext("test-stack", provisioner) as ctx:
            ctx.add_resource("archive", ArchiveBucket(bucket_name="test-archive"))

    assert excinfo.value.subject == "ArchiveBucket"
    assert provisioner.calls == []


def test_failed_composition_reaches_no_provisioner(provisioner):
    """Bei einem Fehler wird nichts provisioniert und alle Outputs schlagen fehl"""
    error = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        with CompositionContext("test-stack", provisioner) as ctx:
            bucket = ctx.add_resource("bucket", Bucket(bucket_name="test-storage"))
            raise error

    assert ctx.composition_failed
    assert provisioner.calls == []
    assert bucket.outputs.error is error


def test_dependency_gates_provisioning(make_provisioner):
    provisioner = make_provisioner(hold={"bucket"})

    with CompositionContext("test-stack", provisioner) as ctx:
        bucket = ctx.add_resource("bucket", Bucket(bucket_name="test-storage"))
        # no property refers to the bucket, only the declared dependency
        queue = ctx.add_resource("queue", WorkQueue(queue_name="test-jobs"), depends_on=[bucket])

    assert provisioner.properties["queue"].is_pending
    assert queue.outputs.is_pending

    provisioner.release("bucket")

    assert queue.output("url").result().endswith("/test-jobs")


def test_unknown_output_key(provisioner):
    with CompositionContext("test-stack", provisioner) as ctx:
        bucket = ctx.add_resource("bucket", Bucket(bucket_name="test-storage"))

    with pytest.raises(ConfigurationError):
        bucket.output("endpoint")


def test_output_is_shared_per_key(provisioner):
    with CompositionContext("test-stack", provisioner) as ctx:
        bucket = ctx.add_resource("bucket", Bucket(bucket_name="test-storage"))

    assert bucket.output("arn") is bucket.output("arn")
