from typing import Type, Optional

from src.model import Resources
from src.model.errors import ConfigurationError

# Registry für Resource-Typen, Typname -> Deklarationsklasse
_resource_registry: dict[str, Type[Resources]] = {}


def register_resource(resource_type: str):
    """Decorator zum Registrieren von Resource-Deklarationen"""
    def decorator(cls: Type[Resources]) -> Type[Resources]:
        registered = _resource_registry.get(resource_type)
        if registered is not None and registered is not cls:
            raise ValueError(
                f"Resource type '{resource_type}' already registered for {registered.__name__}"
            )
        _resource_registry[resource_type] = cls
        return cls
    return decorator


def get_resource_type(resource: Resources) -> str:
    """
    Typname einer Deklaration für den Provisioner.

    Only the exact class counts; a subclass has to be registered itself,
    otherwise the provisioner would build it as its parent type.
    """
    for resource_type, resource_class in _resource_registry.items():
        if type(resource) is resource_class:
            return resource_type
    raise ConfigurationError(
        f"{resource.__class__.__name__} is not a registered resource type", subject=resource.__class__.__name__
    )


def get_resource_class(resource_type: str) -> Optional[Type[Resources]]:
    return _resource_registry.get(resource_type)
