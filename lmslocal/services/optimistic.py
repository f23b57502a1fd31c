import copy
import logging
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceState(str, Enum):
    CLEAN = "clean"
    OPTIMISTIC_PENDING = "optimistic_pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class OptimisticValue(Generic[T]):
    """
    A locally displayed value that may run ahead of the server.

    apply() shows a new value before the server confirms it and keeps the prior
    one; confirm() accepts it; revert() restores the prior value exactly.
    Only one optimistic change may be pending at a time.
    """

    def __init__(self, value: T, name: Optional[str] = None):
        self._value = value
        self._previous: Optional[T] = None
        self._state = ResourceState.CLEAN
        self.name = name

    @property
    def value(self) -> T:
        return self._value

    @property
    def state(self) -> ResourceState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state == ResourceState.OPTIMISTIC_PENDING

    def apply(self, new_value: T) -> None:
        if self._state == ResourceState.OPTIMISTIC_PENDING:
            raise ValueError(f"{self.name or 'Resource'} already has a pending change.")
        self._previous = copy.deepcopy(self._value)
        self._value = new_value
        self._state = ResourceState.OPTIMISTIC_PENDING

    def confirm(self, server_value: Any = None) -> None:
        if self._state != ResourceState.OPTIMISTIC_PENDING:
            raise ValueError(f"Cannot confirm {self.name or 'resource'} in state {self._state.value}.")
        if server_value is not None:
            self._value = server_value
        self._previous = None
        self._state = ResourceState.CONFIRMED

    def revert(self) -> None:
        if self._state != ResourceState.OPTIMISTIC_PENDING:
            raise ValueError(f"Cannot revert {self.name or 'resource'} in state {self._state.value}.")
        logger.warning("Reverting optimistic change to %s", self.name or "resource")
        self._value = self._previous
        self._previous = None
        self._state = ResourceState.REVERTED

    def reset(self, value: T) -> None:
        """Replaces the value with fresh server data and returns to clean."""
        if self._state == ResourceState.OPTIMISTIC_PENDING:
            raise ValueError(f"Cannot reset {self.name or 'resource'} while a change is pending.")
        self._value = value
        self._previous = None
        self._state = ResourceState.CLEAN
