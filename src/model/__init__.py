from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError


@dataclass
class AwsEnviroment:
    profile: str
    account: str
    region: str


class Resources(ABC):
    """
    Abstract base class for all resource declarations of a stack.

    A declaration only describes the desired state of one cloud resource.
    It never talks to AWS itself: the composer hands it to a Provisioner,
    which creates the resource and reports its outputs as an AsyncValue.

    Property values may be plain values or AsyncValues. Deferred properties
    are resolved before the provisioner sees them, so a declaration can refer
    to outputs of resources that do not exist yet.
    """

    # output names the provisioner reports for this resource type
    output_keys: tuple = ()

    @abstractmethod
    def get_resource_id(self) -> str:
        """Gebe eine fachliche resource_id zurück (z.B. bucket_name für S3)"""
        pass

    @abstractmethod
    def properties(self) -> dict:
        """
        Desired configuration of the resource.

        Returns:
            dict: Property name -> value. Values may be AsyncValues, nested
                  dicts or lists; they are deep-resolved before provisioning.
        """
        pass

    def resolved_properties(self) -> AsyncValue[dict]:
        return AsyncValue.gather(self.properties())


class ResourceHandle:
    """Reference to a registered declaration and its (deferred) outputs"""

    def __init__(self, resource_id: str, resource_type: str, resource: Resources,
                 outputs: AsyncValue[dict], depends_on: Optional[list[str]] = None):
        self.resource_id = resource_id
        self.resource_type = resource_type
        self.resource = resource
        self.outputs = outputs
        self.depends_on = list(depends_on or [])
        self._outputs_by_key: dict[str, AsyncValue[Any]] = {}

    def output(self, key: str) -> AsyncValue[Any]:
        """Einzelnen Output-Wert als AsyncValue holen"""
        declared = self.resource.output_keys
        if declared and key not in declared:
            raise ConfigurationError(
                f"Resource '{self.resource_id}' ({self.resource_type}) has no output '{key}'", subject=key
            )

        def pick(outputs: dict) -> Any:
            if key not in outputs:
                raise KeyError(f"Resource '{self.resource_id}' has no output '{key}'")
            return outputs[key]
        if key not in self._outputs_by_key:
            self._outputs_by_key[key] = self.outputs.map(pick, label=f"{self.resource_id}.{key}")
        return self._outputs_by_key[key]

    def __repr__(self) -> str:
        return f"ResourceHandle(id='{self.resource_id}', type='{self.resource_type}')"


class Provisioner(ABC):
    """Contract of the external engine that actually creates resources"""

    @abstractmethod
    def provision(self, resource_id: str, resource_type: str, properties: AsyncValue[dict]) -> AsyncValue[dict]:
        """
        Register a resource with the provisioning engine.

        Args:
            resource_id: Stable logical id of the resource inside the stack
            resource_type: Registered type name (e.g. "lambda", "vpc")
            properties: Fully resolved properties, available once every
                        deferred input of the declaration is known

        Returns:
            AsyncValue[dict]: Outputs of the created resource (ids, ARNs,
            endpoints). Must fail instead of resolving if creation fails.
        """
        pass


class SecretStore(ABC):
    """Contract of the external secret lookup"""

    @abstractmethod
    def lookup(self, secret_ref: str) -> AsyncValue[str]:
        """Secret-String zu einer Secret-Referenz (ARN) holen"""
        pass
