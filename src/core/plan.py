import json

import yaml

from src.core.composer import Deployment
from src.model import Provisioner, SecretStore
from src.model.async_value import AsyncValue
from src.model.registry import get_resource_class


def placeholder(resource_id: str, key: str) -> str:
    return f"<computed:{resource_id}.{key}>"


class PreviewProvisioner(Provisioner):
    """Dry-Run: jede Ressource wird mit Platzhalter-Outputs 'erstellt'"""

    def __init__(self):
        self.provisioned: dict[str, dict] = {}
        self.types: dict[str, str] = {}

    def provision(self, resource_id: str, resource_type: str, properties: AsyncValue[dict]) -> AsyncValue[dict]:
        self.types[resource_id] = resource_type

        def create(resolved: dict) -> dict:
            self.provisioned[resource_id] = resolved
            resource_class = get_resource_class(resource_type)
            keys = resource_class.output_keys if resource_class else ()
            outputs = {}
            for key in keys:
                if key.endswith("_ids"):
                    outputs[key] = [placeholder(resource_id, f"{key}[{i}]") for i in range(2)]
                else:
                    outputs[key] = placeholder(resource_id, key)
            return outputs

        return properties.map(create, label=f"{resource_id}.outputs")


class PreviewSecretStore(SecretStore):
    """Liefert Platzhalter-Credentials für jede Secret-Referenz"""

    def lookup(self, secret_ref: str) -> AsyncValue[str]:
        return AsyncValue.resolved(json.dumps({
            "username": placeholder("secret", "username"),
            "password": placeholder("secret", "password"),
        }))


def render_plan(deployment: Deployment, provisioner: PreviewProvisioner) -> str:
    """Plan eines Deployments als YAML String"""
    resources = {}
    for resource_id in deployment.order:
        handle = deployment.handles[resource_id]
        resources[resource_id] = {
            "type": handle.resource_type,
            "depends_on": list(handle.depends_on),
            "properties": provisioner.provisioned.get(resource_id, "<pending>"),
        }

    exports = deployment.exports.resolve()
    data = {
        "stack": deployment.name,
        "resources": resources,
        "exports": exports.result().to_dict() if exports.is_resolved else "<pending>",
    }
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
