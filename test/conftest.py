import json

import pytest

from src.model import Provisioner, SecretStore
from src.model.async_value import AsyncValue

ACCOUNT = "123456789012"
REGION = "us-east-1"


def fake_outputs(resource_type: str, props: dict) -> dict:
    """Outputs, wie sie ein echter Provisioner für einen Ressourcentyp liefern würde"""
    if resource_type == "vpc":
        return {
            "vpc_id": "vpc-0a1b2c",
            "public_subnet_ids": ["subnet-public-a", "subnet-public-b"],
            "private_subnet_ids": ["subnet-private-a", "subnet-private-b"],
        }
    if resource_type == "security_group":
        return {"security_group_id": "sg-0d1e2f"}
    if resource_type == "aurora_serverless":
        cluster = props["cluster_identifier"]
        return {
            "cluster_id": cluster,
            "endpoint": f"{cluster}.cluster-abc.{REGION}.rds.amazonaws.com",
            "secret_arn": f"arn:aws:secretsmanager:{REGION}:{ACCOUNT}:secret:{cluster}",
        }
    if resource_type == "s3":
        return {"bucket_name": props["bucket_name"], "arn": f"arn:aws:s3:::{props['bucket_name']}"}
    if resource_type == "sqs":
        name = props["queue_name"]
        return {
            "url": f"https://sqs.{REGION}.amazonaws.com/{ACCOUNT}/{name}",
            "arn": f"arn:aws:sqs:{REGION}:{ACCOUNT}:{name}",
        }
    if resource_type == "iam_role":
        return {"arn": f"arn:aws:iam::{ACCOUNT}:role/{props['role_name']}", "role_name": props["role_name"]}
    if resource_type == "lambda":
        name = props["function_name"]
        return {"arn": f"arn:aws:lambda:{REGION}:{ACCOUNT}:function:{name}", "function_name": name}
    if resource_type == "api_gateway":
        return {"api_id": "a1b2c3", "api_url": f"https://a1b2c3.execute-api.{REGION}.amazonaws.com"}
    if resource_type == "schedule":
        name = props["rule_name"]
        return {"rule_arn": f"arn:aws:events:{REGION}:{ACCOUNT}:rule/{name}", "rule_name": name}
    if resource_type == "lambda_permission":
        return {"statement_id": props["statement_id"]}
    if resource_type == "sqs_subscription":
        return {"uuid": "0f1e2d3c"}
    raise KeyError(f"No fake outputs for {resource_type}")


class FakeProvisioner(Provisioner):
    """Erstellt Ressourcen sofort, außer sie stehen in hold; dann erst bei release()"""

    def __init__(self, hold=()):
        self.hold = set(hold)
        self.calls: list[tuple[str, str]] = []
        self.properties: dict[str, AsyncValue] = {}
        self.held: dict[str, AsyncValue] = {}

    def provision(self, resource_id, resource_type, properties):
        self.calls.append((resource_id, resource_type))
        self.properties[resource_id] = properties
        if resource_id in self.hold:
            outputs = AsyncValue(label=f"{resource_id}.held")
            self.held[resource_id] = outputs
            return outputs
        return properties.map(lambda props: fake_outputs(resource_type, props))

    def release(self, resource_id):
        resource_type = dict(self.calls)[resource_id]
        props = self.properties[resource_id].result()
        self.held[resource_id].resolve(fake_outputs(resource_type, props))

    def resolved(self, resource_id) -> dict:
        return self.properties[resource_id].result()


class StaticSecretStore(SecretStore):
    """Liefert für jede Referenz denselben Payload und merkt sich die Abfragen"""

    def __init__(self, payload):
        self.payload = payload
        self.lookups: list[str] = []

    def lookup(self, secret_ref):
        self.lookups.append(secret_ref)
        return AsyncValue.resolved(self.payload, label=f"secret:{secret_ref}")


@pytest.fixture
def make_provisioner():
    return FakeProvisioner


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def make_secret_store():
    return StaticSecretStore


@pytest.fixture
def secret_store():
    return StaticSecretStore(json.dumps({"username": "admin", "password": "s3cret"}))
