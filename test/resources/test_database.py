import json

import pytest

from src.model import ResourceHandle
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError, DependencyUnavailableError
from src.resources.database import ManagedDatabaseCluster, parse_credentials, resolve_credentials
from src.resources.network import NetworkTopology, SecurityBoundary


def make_cluster(**kwargs):
    topology = NetworkTopology(name="test-vpc")
    boundary = SecurityBoundary(name="test-sg", network=topology, vpc_id="vpc-1")
    args = dict(
        cluster_name="test-aurora",
        network=topology,
        security_boundary=boundary,
        subnet_ids=["private-a", "private-b"],
        security_group_id="sg-1",
        database_name="laravelTest",
    )
    args.update(kwargs)
    return ManagedDatabaseCluster(**args)


def test_cluster_properties():
    properties = make_cluster().properties()

    assert properties["cluster_identifier"] == "test-aurora"
    assert properties["engine"] == "aurora-mysql"
    assert properties["database_name"] == "laravelTest"
    assert properties["manage_master_user_password"] is True
    assert properties["vpc_security_group_ids"] == ["sg-1"]
    assert properties["serverlessv2_scaling_configuration"] == {"min_capacity": 0.5, "max_capacity": 1.0}


def test_invalid_capacity():
    with pytest.raises(ConfigurationError):
        make_cluster(min_capacity=2.0, max_capacity=1.0)


def test_parse_credentials():
    credentials = parse_credentials(json.dumps({"username": "admin", "password": "s3cret", "engine": "mysql"}))

    assert credentials.username == "admin"
    assert credentials.password.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(credentials)


@pytest.mark.parametrize("payload", [
    "",
    None,
    "not json",
    "[1, 2]",
    json.dumps({"username": "admin"}),
    json.dumps({"username": "", "password": "s3cret"}),
    json.dumps({"username": "admin", "password": ""}),
])
def test_unusable_secret_is_a_configuration_error(payload):
    with pytest.raises(ConfigurationError):
        parse_credentials(payload)


def test_credentials_wait_for_cluster_secret(make_secret_store):
    """Credentials lösen sich erst auf, wenn der Cluster sein Secret kennt"""
    outputs = AsyncValue()
    cluster = ResourceHandle("aurora", "aurora_serverless", make_cluster(), outputs)
    store = make_secret_store(json.dumps({"username": "admin", "password": "s3cret"}))

    credentials = resolve_credentials(cluster, store)
    assert credentials.is_pending
    assert store.lookups == []

    outputs.resolve({"cluster_id": "test-aurora", "endpoint": "db.local", "secret_arn": "arn:secret"})

    assert store.lookups == ["arn:secret"]
    assert credentials.result().username == "admin"


def test_empty_secret_fails_credentials(make_secret_store):
    outputs = AsyncValue.resolved({"cluster_id": "c", "endpoint": "e", "secret_arn": "arn:secret"})
    cluster = ResourceHandle("aurora", "aurora_serverless", make_cluster(), outputs)

    credentials = resolve_credentials(cluster, make_secret_store(""))

    assert credentials.is_failed
    assert isinstance(credentials.error, ConfigurationError)
    with pytest.raises(DependencyUnavailableError):
        credentials.result()
