from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src.model import Provisioner, ResourceHandle, Resources
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError
from src.model.registry import get_resource_type


@dataclass
class CompositionProgress:
    """Tracks which declarations were registered, in order"""
    total_registered: int = 0
    registered_resource_ids: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


class CompositionContext:
    """
    Context manager collecting declarations in dependency order.

    Declarations are handed to the provisioner only when the block exits
    without error. If composition fails, the provisioner never sees any of
    them and every handle's outputs fail with the composition error.
    """

    def __init__(self, name: str, provisioner: Provisioner):
        self.name = name
        self.provisioner = provisioner
        self.handles: dict[str, ResourceHandle] = {}
        self.progress = CompositionProgress()
        self.composition_failed = False
        self._pending: list[tuple[ResourceHandle, AsyncValue]] = []
        self._committed: AsyncValue[bool] = AsyncValue(label=f"{name}.commit")

    def add_resource(self, resource_id: str, resource: Resources,
                     depends_on: Optional[list[ResourceHandle]] = None) -> ResourceHandle:
        """Register a declaration; its outputs resolve once the provisioner created it"""
        if resource_id in self.handles:
            raise ConfigurationError(f"Resource id '{resource_id}' registered twice", subject=resource_id)

        dependency_ids = []
        for dependency in depends_on or []:
            if self.handles.get(dependency.resource_id) is not dependency:
                raise ConfigurationError(
                    f"Resource '{resource_id}' depends on unregistered '{dependency.resource_id}'",
                    subject=resource_id
                )
            dependency_ids.append(dependency.resource_id)

        resource_type = get_resource_type(resource)
        print(f"[COMPOSE] Declaring: {resource_id} ({resource.__class__.__name__})")

        # properties are read at commit time; dependencies gate provisioning
        # even when no property refers to them
        gate = AsyncValue.all(self._committed, *(self.handles[d].outputs for d in dependency_ids))
        properties = gate.flat_map(lambda _: resource.resolved_properties(), label=f"{resource_id}.properties")

        outputs = AsyncValue(label=f"{resource_id}.outputs")
        handle = ResourceHandle(resource_id, resource_type, resource, outputs, dependency_ids)
        self.handles[resource_id] = handle
        self._pending.append((handle, properties))
        self.progress.total_registered += 1
        self.progress.registered_resource_ids.append(resource_id)
        return handle

    def get(self, resource_id: str) -> Optional[ResourceHandle]:
        return self.handles.get(resource_id)

    @property
    def order(self) -> list[str]:
        return list(self.progress.registered_resource_ids)

    def _commit(self) -> None:
        """Alle Deklarationen in Registrierungsreihenfolge an den Provisioner übergeben"""
        self._committed.resolve(True)
        for handle, properties in self._pending:
            created = self.provisioner.provision(handle.resource_id, handle.resource_type, properties)
            created.on_settled(self._forward_to(handle.outputs))
        self._pending = []

    def _discard(self, error: BaseException) -> None:
        self._committed.fail(error)
        for handle, _ in self._pending:
            handle.outputs.fail(error)
        self._pending = []

    @staticmethod
    def _forward_to(target: AsyncValue):
        def forward(source: AsyncValue) -> None:
            if source.is_failed:
                target.fail(source.error)
            else:
                target.resolve(source.result())
        return forward

    def __enter__(self) -> "CompositionContext":
        print(f"[COMPOSE] Starting composition for stack: {self.name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            print(f"[ERROR] Composition failed: {exc_val}")
            print(f"[ERROR] Discarding {self.progress.total_registered} declared resources")
            self.composition_failed = True
            self._discard(exc_val)
            return False  # Re-raise the exception

        print(f"[COMPOSE] All resources declared ({self.progress.total_registered}), handing over to provisioner")
        self._commit()
        return False
