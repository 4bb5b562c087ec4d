import pytest

from src.model.errors import ConfigurationError
from src.model.flags import FeatureFlags


def test_defaults():
    flags = FeatureFlags()

    assert not flags.use_mysql
    assert not flags.use_vpc
    assert flags.api_warm_rate == "rate(5 minutes)"
    assert flags.artisan_schedule_rate == "rate(1 minute)"
    assert not flags.requires_network


def test_network_is_required_by_either_flag():
    assert FeatureFlags(useVPC=True).requires_network
    assert FeatureFlags(useMySQL=True).requires_network
    assert FeatureFlags(useMySQL=True).database_enabled
    assert not FeatureFlags(useVPC=True).database_enabled


def test_flags_are_immutable():
    flags = FeatureFlags()
    with pytest.raises(Exception):
        flags.use_mysql = True


def test_from_mapping_strips_namespace_and_coerces_strings():
    flags = FeatureFlags.from_mapping({
        "bref-stack:useMySQL": "true",
        "bref-stack:useApiWarmer": "false",
        "apiWarmRate": "rate(10 minutes)",
    })

    assert flags.use_mysql is True
    assert flags.use_api_warmer is False
    assert flags.api_warm_rate == "rate(10 minutes)"


def test_invalid_rate_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        FeatureFlags.from_mapping({"artisanScheduleRate": "every minute"})


def test_cron_expression_is_accepted():
    flags = FeatureFlags.from_mapping({"artisanScheduleRate": "cron(0 12 * * ? *)"})
    assert flags.artisan_schedule_rate == "cron(0 12 * * ? *)"


def test_from_yaml(tmp_path):
    config_file = tmp_path / "stack.yaml"
    config_file.write_text(
        "config:\n"
        "  bref-stack:useVPC: true\n"
        "  bref-stack:stackName: prod\n"
    )

    flags = FeatureFlags.from_yaml(config_file)

    assert flags.use_vpc
    assert flags.stack_name == "prod"


def test_from_yaml_missing_file_gives_defaults(tmp_path):
    assert FeatureFlags.from_yaml(tmp_path / "missing.yaml") == FeatureFlags()


@pytest.mark.parametrize("value", ["", "   ", None])
def test_blank_rate_falls_back_to_default(value):
    flags = FeatureFlags.from_mapping({
        "bref-stack:apiWarmRate": value,
        "bref-stack:artisanScheduleRate": value,
    })

    assert flags.api_warm_rate == "rate(5 minutes)"
    assert flags.artisan_schedule_rate == "rate(1 minute)"


def test_null_rate_in_yaml_uses_default(tmp_path):
    config_file = tmp_path / "stack.yaml"
    config_file.write_text(
        "config:\n"
        "  bref-stack:useApiWarmer: true\n"
        "  bref-stack:apiWarmRate:\n"
    )

    assert FeatureFlags.from_yaml(config_file).api_warm_rate == "rate(5 minutes)"
