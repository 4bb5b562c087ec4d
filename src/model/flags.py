import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from src.model.errors import ConfigurationError

_SCHEDULE_EXPRESSION = re.compile(r"^(rate\(\s*\d+\s+(minute|minutes|hour|hours|day|days)\s*\)|cron\(.+\))$")


class FeatureFlags(BaseModel):
    """
    Immutable deployment options that drive conditional composition.

    Keys use the camelCase names of the stack configuration file, e.g.::

        config:
          bref-stack:useMySQL: true
          bref-stack:apiWarmRate: rate(10 minutes)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    use_mysql: bool = Field(default=False, alias="useMySQL")
    use_vpc: bool = Field(default=False, alias="useVPC")
    use_octane: bool = Field(default=False, alias="useOctane")
    use_api_warmer: bool = Field(default=False, alias="useApiWarmer")
    use_artisan_scheduler: bool = Field(default=False, alias="useArtisanScheduler")
    api_warm_rate: str = Field(default="rate(5 minutes)", alias="apiWarmRate")
    artisan_schedule_rate: str = Field(default="rate(1 minute)", alias="artisanScheduleRate")

    stack_name: str = Field(default="dev", min_length=1, alias="stackName")
    app_name: str = Field(default="laravel-test", min_length=1, alias="appName")
    php_version: str = Field(default="8.2", pattern=r"^\d+\.\d+$", alias="phpVersion")
    database_name: str = Field(default="laravelTest", min_length=1, alias="databaseName")
    code_path: str = Field(default="../laravel", min_length=1, alias="codePath")

    @field_validator("api_warm_rate", "artisan_schedule_rate", mode="before")
    @classmethod
    def _default_when_blank(cls, value, info: ValidationInfo):
        # an empty or null entry in the stack config means "use the default rate"
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("api_warm_rate", "artisan_schedule_rate")
    @classmethod
    def _check_schedule_expression(cls, value: str) -> str:
        value = value.strip()
        if not _SCHEDULE_EXPRESSION.match(value):
            raise ValueError(f"'{value}' is not a rate(...) or cron(...) expression")
        return value

    @property
    def requires_network(self) -> bool:
        return self.use_mysql or self.use_vpc

    @property
    def database_enabled(self) -> bool:
        # network is derived from the same flag, so use_mysql alone decides
        return self.use_mysql and self.requires_network

    @classmethod
    def from_mapping(cls, data: dict) -> "FeatureFlags":
        """Flags aus einem (ggf. namespaced) Config-Mapping laden"""
        options = {}
        for key, value in (data or {}).items():
            options[str(key).split(":")[-1]] = value
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid feature flags:\n{e}", subject="flags") from e

    @classmethod
    def from_yaml(cls, path: Path) -> "FeatureFlags":
        if not path.exists():
            return cls()

        with path.open() as f:
            data = yaml.safe_load(f) or {}

        return cls.from_mapping(data.get("config", data))
