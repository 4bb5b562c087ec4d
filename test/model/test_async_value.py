import pytest

from src.model.async_value import AsyncValue
from src.model.errors import DependencyUnavailableError, UnresolvedValueError


def test_map_waits_for_source():
    source = AsyncValue(label="endpoint")
    calls = []
    derived = source.map(lambda v: calls.append(v) or v.upper())

    assert derived.is_pending
    assert calls == []

    source.resolve("db.local")

    assert derived.result() == "DB.LOCAL"
    assert calls == ["db.local"]


def test_resolves_at_most_once():
    value = AsyncValue.resolved(1)
    with pytest.raises(RuntimeError):
        value.resolve(2)
    with pytest.raises(RuntimeError):
        value.fail(ValueError("late"))
    assert value.result() == 1


def test_combinators_do_not_reevaluate_inputs():
    source = AsyncValue()
    evaluations = []
    mapped = source.map(lambda v: evaluations.append(v) or v * 2)
    first = mapped.map(lambda v: v + 1)
    second = AsyncValue.combine(mapped, mapped, lambda a, b: a + b)

    source.resolve(5)

    assert evaluations == [5]
    assert first.result() == 11
    assert second.result() == 20


def test_combine_resolves_only_after_both_inputs():
    a = AsyncValue()
    b = AsyncValue()
    combined = AsyncValue.combine(a, b, lambda x, y: f"{x}:{y}")

    b.resolve("sg-1")
    assert combined.is_pending

    a.resolve("subnet-1")
    assert combined.result() == "subnet-1:sg-1"


def test_failure_in_function_propagates_to_derived_values():
    source = AsyncValue()
    error = ValueError("malformed")

    def explode(_):
        raise error

    failed = source.map(explode)
    downstream = AsyncValue.combine(failed, AsyncValue.resolved(1), lambda a, b: (a, b)).map(str)

    source.resolve("payload")

    assert failed.is_failed
    assert downstream.is_failed
    assert downstream.error is error


def test_upstream_failure_skips_mapping_function():
    source = AsyncValue()
    calls = []
    derived = source.map(lambda v: calls.append(v))

    source.fail(KeyError("secret"))

    assert derived.is_failed
    assert calls == []


def test_result_on_failed_value_carries_cause():
    cause = KeyError("secret_arn")
    value = AsyncValue.failed(cause, label="aurora.secret_arn")

    with pytest.raises(DependencyUnavailableError) as excinfo:
        value.result()

    assert excinfo.value.cause is cause


def test_result_on_pending_value():
    with pytest.raises(UnresolvedValueError):
        AsyncValue(label="vpc.vpc_id").result()


def test_flat_map_chains_deferred_lookups():
    arn = AsyncValue()
    secret = AsyncValue()
    chained = arn.flat_map(lambda _: secret)

    arn.resolve("arn:secret")
    assert chained.is_pending

    secret.resolve("{}")
    assert chained.result() == "{}"


def test_all_fails_with_first_failure_and_ignores_later_settles():
    a = AsyncValue()
    b = AsyncValue()
    both = AsyncValue.all(a, b)
    first = RuntimeError("first")

    a.fail(first)
    b.resolve("late")

    assert both.error is first


def test_all_of_nothing_resolves_immediately():
    assert AsyncValue.all().result() == ()


def test_gather_resolves_nested_structures():
    endpoint = AsyncValue()
    structure = {
        "DB_HOST": endpoint,
        "DB_PORT": "3306",
        "layers": ["arn:a", AsyncValue.resolved("arn:b")],
        "vpc": AsyncValue.resolved({"subnet_ids": [AsyncValue.resolved("subnet-1")]}),
    }
    gathered = AsyncValue.gather(structure)
    assert gathered.is_pending

    endpoint.resolve("db.local")

    assert gathered.result() == {
        "DB_HOST": "db.local",
        "DB_PORT": "3306",
        "layers": ["arn:a", "arn:b"],
        "vpc": {"subnet_ids": ["subnet-1"]},
    }


def test_on_settled_runs_immediately_when_already_settled():
    seen = []
    AsyncValue.resolved("x").on_settled(lambda v: seen.append(v.result()))
    assert seen == ["x"]
