"""Observable values with change notification for presentation layers."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

from imaging_conformance.config.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
Listener = Callable[[Any], Union[None, Awaitable[None]]]

_SCALAR_TYPES = (type(None), bool, int, float, str)


class ObservableValue(Generic[T]):
    """Holds a single value; ``set`` replaces it atomically and notifies subscribers.

    Coroutine listeners are scheduled on the running loop. Setting an equal
    scalar value is a no-op.
    """

    def __init__(self, initial: Optional[T] = None, name: str = ""):
        self._value = initial
        self._name = name
        self._listeners: List[Listener] = []

    def get(self) -> Optional[T]:
        return self._value

    def set(self, value: T) -> None:
        if (
            isinstance(value, _SCALAR_TYPES)
            and type(value) is type(self._value)
            and value == self._value
        ):
            return
        self._value = value
        self._notify(value)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, value: T) -> None:
        for listener in list(self._listeners):
            result = None
            try:
                result = listener(value)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result, loop=asyncio.get_running_loop())
            except Exception as e:
                if inspect.iscoroutine(result):
                    result.close()
                logger.error("Observable listener failed", observable=self._name, error=str(e), exc_info=True)

    def __repr__(self) -> str:
        return f"ObservableValue({self._name!r}, {self._value!r})"
