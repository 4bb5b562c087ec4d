import json

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from src.model import ResourceHandle, Resources, SecretStore
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError
from src.model.registry import register_resource
from src.resources.network import MYSQL_PORT, NetworkTopology, SecurityBoundary


@register_resource("aurora_serverless")
class ManagedDatabaseCluster(Resources):
    """Aurora MySQL Serverless v2 Cluster mit von AWS verwaltetem Master-Passwort"""

    output_keys = ("cluster_id", "endpoint", "secret_arn")

    def __init__(
        self,
        cluster_name: str,
        network: NetworkTopology,
        security_boundary: SecurityBoundary,
        subnet_ids,
        security_group_id,
        database_name: str,
        master_username: str = "admin",
        engine_version: str = "8.0.mysql_aurora.3.05.2",
        min_capacity: float = 0.5,
        max_capacity: float = 1.0
    ):
        if min_capacity <= 0 or max_capacity < min_capacity:
            raise ConfigurationError(
                f"Invalid serverless capacity {min_capacity}..{max_capacity} for '{cluster_name}'",
                subject=cluster_name
            )
        self.cluster_name = cluster_name
        self.network = network
        self.security_boundary = security_boundary
        self.subnet_ids = subnet_ids
        self.security_group_id = security_group_id
        self.database_name = database_name
        self.master_username = master_username
        self.engine_version = engine_version
        self.min_capacity = min_capacity
        self.max_capacity = max_capacity

    def get_resource_id(self) -> str:
        return self.cluster_name

    def properties(self) -> dict:
        return {
            "cluster_identifier": self.cluster_name,
            "engine": "aurora-mysql",
            "engine_mode": "provisioned",
            "engine_version": self.engine_version,
            "database_name": self.database_name,
            "master_username": self.master_username,
            "manage_master_user_password": True,
            "port": MYSQL_PORT,
            "subnet_ids": self.subnet_ids,
            "vpc_security_group_ids": [self.security_group_id],
            "serverlessv2_scaling_configuration": {
                "min_capacity": self.min_capacity,
                "max_capacity": self.max_capacity,
            },
            "instances": [{"instance_class": "db.serverless"}],
            "skip_final_snapshot": True,
        }

    def __repr__(self) -> str:
        return f"ManagedDatabaseCluster(name='{self.cluster_name}')"


class Credentials(BaseModel):
    """Login der Datenbank, aus dem Secret-JSON gelesen"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    username: str = Field(..., min_length=1)
    password: SecretStr


def parse_credentials(secret_string) -> Credentials:
    """
    Parse a Secrets Manager payload into Credentials.

    Raises:
        ConfigurationError: If the payload is empty, not a JSON object, or
                            lacks a non-empty username/password.
    """
    if not secret_string:
        raise ConfigurationError("Secret string is empty", subject="credentials")
    try:
        data = json.loads(secret_string)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Secret string is not valid JSON: {e}", subject="credentials") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Secret string is not a JSON object", subject="credentials")
    try:
        credentials = Credentials.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Secret does not contain usable credentials:\n{e}", subject="credentials") from e
    if not credentials.password.get_secret_value():
        raise ConfigurationError("Secret contains an empty password", subject="credentials")
    return credentials


def resolve_credentials(cluster: ResourceHandle, secret_store: SecretStore) -> AsyncValue[Credentials]:
    """Credentials erst nach Cluster und Secret auflösen: secret_arn -> Lookup -> parse"""
    return (
        cluster.output("secret_arn")
        .flat_map(secret_store.lookup, label="database.secret")
        .map(parse_credentials, label="database.credentials")
    )
