from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from src.model.async_value import AsyncValue

# Convention of the stack exports: a component that was not created exports
# an empty string instead of being omitted.
NOT_CREATED = ""


class StackOutputs(BaseModel):
    """Resolved stack exports, as consumed by operator tooling"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(..., alias="apiUrl")
    bucket_name: str = Field(..., alias="bucketName")
    lambda_name: str = Field(..., alias="lambdaName")
    lambda_role_arn: str = Field(..., alias="lambdaRoleArn")
    console_lambda_name: str = Field(..., alias="consoleLambdaName")
    worker_lambda_name: str = Field(..., alias="workerLambdaName")
    queue_url: str = Field(..., alias="queueUrl")
    use_octane: bool = Field(..., alias="useOctane")
    vpc_id: str = Field(NOT_CREATED, alias="vpcId")
    aurora_cluster_id: str = Field(NOT_CREATED, alias="auroraClusterId")
    aurora_cluster_endpoint: str = Field(NOT_CREATED, alias="auroraClusterEndpoint")

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_yaml(cls, path: Path) -> "StackOutputs":
        with path.open() as f:
            data = yaml.safe_load(f) or {}

        return cls.model_validate(data)

    def to_yaml(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)


class StackExports:
    """Flat mapping of named export values; entries may still be deferred"""

    def __init__(self, values: dict[str, Any]):
        self.values = dict(values)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def names(self) -> list[str]:
        return list(self.values)

    def resolve(self) -> AsyncValue[StackOutputs]:
        return AsyncValue.gather(self.values).map(StackOutputs.model_validate, label="exports")

    def __repr__(self) -> str:
        return f"StackExports({self.names()})"
