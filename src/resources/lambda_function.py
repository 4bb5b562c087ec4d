from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from src.model import ResourceHandle, Resources
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError
from src.model.registry import register_resource
from src.resources.iam_role import ComputeRole
from src.resources.layers import LayerRegistry

MIN_TIMEOUT = 1
MAX_TIMEOUT = 900
MIN_MEMORY_SIZE = 128
MAX_MEMORY_SIZE = 10240

DEFAULT_TIMEOUT = 28
DEFAULT_MEMORY_SIZE = 1024
DEFAULT_ARCHITECTURE = "x86_64"
DEFAULT_RUNTIME = "provided.al2"


@dataclass(frozen=True)
class CodeArchive:
    """Verweis auf das Code-Artefakt einer Function (Verzeichnis oder ZIP)"""
    path: str


@dataclass(frozen=True)
class VpcConfig:
    subnet_ids: tuple = ()
    security_group_ids: tuple = ()

    def to_dict(self) -> dict:
        return {
            "subnet_ids": list(self.subnet_ids),
            "security_group_ids": list(self.security_group_ids),
        }


@register_resource("lambda")
@dataclass(frozen=True)
class FunctionSpec(Resources):
    """Immutable description of one deployable Lambda function"""
    output_keys = ("arn", "function_name")

    function_name: str
    code: CodeArchive
    role_arn: Any
    handler: str
    environment: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    layers: tuple = ()
    timeout: int = DEFAULT_TIMEOUT
    memory_size: int = DEFAULT_MEMORY_SIZE
    architecture: str = DEFAULT_ARCHITECTURE
    runtime: str = DEFAULT_RUNTIME
    vpc_config: Optional[AsyncValue] = None

    def get_resource_id(self) -> str:
        return self.function_name

    def properties(self) -> dict:
        properties = {
            "function_name": self.function_name,
            "code": self.code.path,
            "role": self.role_arn,
            "handler": self.handler,
            "runtime": self.runtime,
            "architectures": [self.architecture],
            "environment": dict(self.environment),
            "layers": list(self.layers),
            "timeout": self.timeout,
            "memory_size": self.memory_size,
        }
        if self.vpc_config is not None:
            properties["vpc_config"] = self.vpc_config.map(lambda config: config.to_dict())
        return properties

    def __repr__(self) -> str:
        return f"FunctionSpec(name='{self.function_name}', handler='{self.handler}', layers={len(self.layers)})"


class FunctionFactory:
    """Validiert Function-Eingaben und baut daraus FunctionSpecs"""

    def __init__(self, layer_registry: LayerRegistry = None, architecture: str = DEFAULT_ARCHITECTURE,
                 runtime: str = DEFAULT_RUNTIME):
        self.layer_registry = layer_registry or LayerRegistry()
        self.architecture = architecture
        self.runtime = runtime

    def build(
        self,
        name: str,
        code: CodeArchive,
        role: ResourceHandle,
        handler: str,
        environment: Optional[Mapping[str, Any]] = None,
        bref_layers: Sequence = (),
        layers: Optional[Sequence[str]] = None,
        timeout: int = DEFAULT_TIMEOUT,
        memory_size: int = DEFAULT_MEMORY_SIZE,
        vpc_config: Optional[AsyncValue] = None
    ) -> FunctionSpec:
        """
        Build an immutable FunctionSpec.

        Args:
            name: Function name, must not be empty
            code: Code artifact reference
            role: Handle of the shared execution role; the role is frozen
            handler: Handler string passed to the runtime
            environment: Environment variables (values may be AsyncValues)
            bref_layers: Ordered short layer names ("runtime", "cli", "fpm-runtime")
            layers: Additional raw layer ARNs appended after the Bref layers
            timeout: Seconds, 1..900
            memory_size: MB, 128..10240
            vpc_config: Deferred VpcConfig when the function runs inside a VPC

        Raises:
            ConfigurationError: On any invalid input. Nothing is built then.
        """
        if not name or not name.strip():
            raise ConfigurationError("Function name must not be empty", subject="name")
        if not handler or not handler.strip():
            raise ConfigurationError(f"Function '{name}' needs a handler", subject=name)
        for setting, value in (("timeout", timeout), ("memory_size", memory_size)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{setting} of '{name}' must be an integer, got {value!r}", subject=name)
        if not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
            raise ConfigurationError(
                f"Timeout {timeout}s of '{name}' outside {MIN_TIMEOUT}..{MAX_TIMEOUT}s", subject=name
            )
        if not MIN_MEMORY_SIZE <= memory_size <= MAX_MEMORY_SIZE:
            raise ConfigurationError(
                f"Memory size {memory_size}MB of '{name}' outside {MIN_MEMORY_SIZE}..{MAX_MEMORY_SIZE}MB",
                subject=name
            )

        layer_arns = self.layer_registry.resolve_all(bref_layers)
        layer_arns.extend(layers or [])

        if isinstance(role.resource, ComputeRole):
            role.resource.freeze()

        return FunctionSpec(
            function_name=name,
            code=code,
            role_arn=role.output("arn"),
            handler=handler,
            environment=MappingProxyType(dict(environment or {})),
            layers=tuple(layer_arns),
            timeout=timeout,
            memory_size=memory_size,
            architecture=self.architecture,
            runtime=self.runtime,
            vpc_config=vpc_config
        )


@register_resource("lambda_permission")
class InvokePermission(Resources):
    """Erlaubt einem AWS Service, eine Function aufzurufen"""

    output_keys = ("statement_id",)

    def __init__(self, statement_id: str, function_name, principal: str, source_arn=None):
        self.statement_id = statement_id
        self.function_name = function_name
        self.principal = principal
        self.source_arn = source_arn

    def get_resource_id(self) -> str:
        return self.statement_id

    def properties(self) -> dict:
        return {
            "statement_id": self.statement_id,
            "action": "lambda:InvokeFunction",
            "function_name": self.function_name,
            "principal": self.principal,
            "source_arn": self.source_arn,
        }

    def __repr__(self) -> str:
        return f"InvokePermission(id='{self.statement_id}', principal='{self.principal}')"
