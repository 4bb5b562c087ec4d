from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from src.model.errors import DependencyUnavailableError, UnresolvedValueError

T = TypeVar('T')
U = TypeVar('U')
V = TypeVar('V')


class AsyncState(Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


class AsyncValue(Generic[T]):
    """
    Deferred value that becomes known only after an external resource exists.

    An AsyncValue settles exactly once, either resolved with a value or failed
    with an exception. Combinators never resolve their inputs themselves; they
    register a callback and settle the derived value when the inputs settle.
    Callbacks run synchronously on the thread that settles the source.

    Failure is sticky: a value derived from a failed input fails with the same
    exception object, so the originating cause reaches the final consumer
    unchanged.
    """

    def __init__(self, label: Optional[str] = None):
        self.label = label
        self._state = AsyncState.PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._callbacks: list[Callable[["AsyncValue[T]"], None]] = []

    @classmethod
    def resolved(cls, value: T, label: Optional[str] = None) -> "AsyncValue[T]":
        result = cls(label)
        result.resolve(value)
        return result

    @classmethod
    def failed(cls, error: BaseException, label: Optional[str] = None) -> "AsyncValue[T]":
        result = cls(label)
        result.fail(error)
        return result

    @classmethod
    def lift(cls, value: Any) -> "AsyncValue":
        """Wrap a plain value; AsyncValues are returned unchanged"""
        if isinstance(value, AsyncValue):
            return value
        return cls.resolved(value)

    @property
    def state(self) -> AsyncState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state is AsyncState.PENDING

    @property
    def is_resolved(self) -> bool:
        return self._state is AsyncState.RESOLVED

    @property
    def is_failed(self) -> bool:
        return self._state is AsyncState.FAILED

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def resolve(self, value: T) -> None:
        self._settle(AsyncState.RESOLVED, value=value)

    def fail(self, error: BaseException) -> None:
        self._settle(AsyncState.FAILED, error=error)

    def _settle(self, state: AsyncState, value: Any = None, error: Optional[BaseException] = None) -> None:
        if self._state is not AsyncState.PENDING:
            raise RuntimeError(f"AsyncValue {self._describe()} already settled ({self._state.value})")
        self._state = state
        self._value = value
        self._error = error
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def on_settled(self, callback: Callable[["AsyncValue[T]"], None]) -> None:
        if self._state is AsyncState.PENDING:
            self._callbacks.append(callback)
        else:
            callback(self)

    def result(self) -> T:
        """Read the value; only valid once resolved"""
        if self._state is AsyncState.RESOLVED:
            return self._value
        if self._state is AsyncState.FAILED:
            raise DependencyUnavailableError(
                f"AsyncValue {self._describe()} failed: {self._error}", cause=self._error
            ) from self._error
        raise UnresolvedValueError(f"AsyncValue {self._describe()} is not resolved yet")

    def map(self, f: Callable[[T], U], label: Optional[str] = None) -> "AsyncValue[U]":
        derived: AsyncValue[U] = AsyncValue(label or self.label)

        def forward(source: AsyncValue[T]) -> None:
            if source.is_failed:
                derived.fail(source.error)
                return
            try:
                mapped = f(source._value)
            except Exception as e:
                derived.fail(e)
                return
            derived.resolve(mapped)

        self.on_settled(forward)
        return derived

    def flat_map(self, f: Callable[[T], "AsyncValue[U]"], label: Optional[str] = None) -> "AsyncValue[U]":
        derived: AsyncValue[U] = AsyncValue(label or self.label)

        def forward_inner(inner: AsyncValue[U]) -> None:
            if inner.is_failed:
                derived.fail(inner.error)
            else:
                derived.resolve(inner._value)

        def forward(source: AsyncValue[T]) -> None:
            if source.is_failed:
                derived.fail(source.error)
                return
            try:
                inner = f(source._value)
            except Exception as e:
                derived.fail(e)
                return
            AsyncValue.lift(inner).on_settled(forward_inner)

        self.on_settled(forward)
        return derived

    @staticmethod
    def combine(a: "AsyncValue[T]", b: "AsyncValue[U]", f: Callable[[T, U], V],
                label: Optional[str] = None) -> "AsyncValue[V]":
        return AsyncValue.all(a, b).map(lambda pair: f(pair[0], pair[1]), label=label)

    @staticmethod
    def all(*values: Any) -> "AsyncValue[tuple]":
        """Resolve once every input resolved; fail with the first input failure"""
        inputs = [AsyncValue.lift(v) for v in values]
        derived: AsyncValue[tuple] = AsyncValue()
        if not inputs:
            derived.resolve(())
            return derived

        remaining = [len(inputs)]

        def on_input(source: AsyncValue) -> None:
            if not derived.is_pending:
                return
            if source.is_failed:
                derived.fail(source.error)
                return
            remaining[0] -= 1
            if remaining[0] == 0:
                derived.resolve(tuple(v._value for v in inputs))

        for value in inputs:
            value.on_settled(on_input)
        return derived

    @staticmethod
    def gather(structure: Any) -> "AsyncValue":
        """Deep-resolve a dict/list/tuple structure that may contain AsyncValues"""
        if isinstance(structure, AsyncValue):
            return structure.flat_map(AsyncValue.gather)
        if isinstance(structure, dict):
            keys = list(structure.keys())
            return AsyncValue.all(*(AsyncValue.gather(structure[k]) for k in keys)).map(
                lambda values: dict(zip(keys, values))
            )
        if isinstance(structure, (list, tuple)):
            container = type(structure)
            return AsyncValue.all(*(AsyncValue.gather(item) for item in structure)).map(
                lambda values: container(values)
            )
        return AsyncValue.resolved(structure)

    def _describe(self) -> str:
        return f"'{self.label}'" if self.label else f"<{id(self):#x}>"

    def __repr__(self) -> str:
        if self._state is AsyncState.RESOLVED:
            return f"AsyncValue({self._describe()}, resolved={self._value!r})"
        if self._state is AsyncState.FAILED:
            return f"AsyncValue({self._describe()}, failed={self._error!r})"
        return f"AsyncValue({self._describe()}, pending)"
