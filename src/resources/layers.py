from enum import Enum

from src.model.errors import ConfigurationError

BREF_ACCOUNT = "534081306603"
DEFAULT_PHP_VERSION = "8.2"
DEFAULT_LAYER_REGION = "us-east-1"


class LayerName(Enum):
    """Kurznamen der Bref Runtime-Layer"""
    RUNTIME = "runtime"
    CLI = "cli"
    FPM_RUNTIME = "fpm-runtime"


# {php} is the version without dot, e.g. "82"
_LAYER_TEMPLATES: dict[LayerName, str] = {
    LayerName.RUNTIME: "arn:aws:lambda:{region}:{account}:layer:php-{php}:68",
    LayerName.CLI: "arn:aws:lambda:{region}:{account}:layer:console:78",
    LayerName.FPM_RUNTIME: "arn:aws:lambda:{region}:{account}:layer:php-{php}-fpm:68",
}

_missing = set(LayerName) - set(_LAYER_TEMPLATES)
if _missing:
    raise RuntimeError(f"Layer templates missing for: {sorted(m.value for m in _missing)}")


class LayerRegistry:
    """Fixed mapping from layer short name to a concrete layer ARN"""

    def __init__(self, php_version: str = DEFAULT_PHP_VERSION, region: str = DEFAULT_LAYER_REGION):
        self.php_version = php_version
        self.region = region

    @staticmethod
    def parse(name) -> LayerName:
        if isinstance(name, LayerName):
            return name
        try:
            return LayerName(name)
        except ValueError:
            known = ", ".join(n.value for n in LayerName)
            raise ConfigurationError(f"Layer {name!r} not found in layer registry (known: {known})",
                                     subject=str(name)) from None

    def resolve(self, name) -> str:
        """Layer-ARN für einen Kurznamen; unbekannte Namen sind ein Konfigurationsfehler"""
        layer = self.parse(name)
        return _LAYER_TEMPLATES[layer].format(
            region=self.region,
            account=BREF_ACCOUNT,
            php=self.php_version.replace(".", ""),
        )

    def resolve_all(self, names) -> list[str]:
        # validate everything first so no partial list escapes
        layers = [self.parse(name) for name in names]
        return [self.resolve(layer) for layer in layers]

    def __repr__(self) -> str:
        return f"LayerRegistry(php='{self.php_version}', region='{self.region}')"
