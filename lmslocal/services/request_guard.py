"""
Request ordering helpers.

InFlightGuard collapses duplicate loads of the same resource into one call.
LoadScope drops responses that arrive after a newer load started or after
the view that asked for them went away.
"""
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestKey = Tuple[str, Hashable]


class InFlightGuard:
    """Idempotent in-flight latch keyed by (resource, id)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Dict[RequestKey, Future] = {}

    def is_in_flight(self, resource: str, resource_id: Hashable) -> bool:
        with self._lock:
            return (resource, resource_id) in self._pending

    def run(self, resource: str, resource_id: Hashable, loader: Callable[[], T]) -> T:
        """
        Runs `loader` unless an identical request is already running, in which
        case the caller waits for that one and receives its result or error.
        """
        key = (resource, resource_id)
        with self._lock:
            existing = self._pending.get(key)
            if existing is None:
                future: Future = Future()
                self._pending[key] = future
                owner = True
            else:
                future = existing
                owner = False

        if not owner:
            logger.debug("Joining in-flight request %s", key)
            return future.result()

        try:
            result = loader()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._pending.pop(key, None)


class LoadToken:
    def __init__(self, scope: "LoadScope", generation: int):
        self.scope = scope
        self.generation = generation

    @property
    def is_current(self) -> bool:
        return self.scope.is_current(self)


class LoadScope:
    """
    Generation counter plus cancellation flag for one page's data loads.
    Only the newest load of a live scope may apply its response.
    """

    def __init__(self, name: str = "page"):
        self.name = name
        self._lock = threading.Lock()
        self._generation = 0
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> LoadToken:
        with self._lock:
            if self._cancelled:
                raise RuntimeError(f"Load scope '{self.name}' has been cancelled.")
            self._generation += 1
            return LoadToken(self, self._generation)

    def is_current(self, token: LoadToken) -> bool:
        with self._lock:
            return not self._cancelled and token.generation == self._generation

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def apply(self, token: LoadToken, response: Any, setter: Callable[[Any], None]) -> bool:
        """Calls setter(response) if the token is still current. Returns whether it was applied."""
        if not self.is_current(token):
            logger.debug("Dropping stale response for %s (generation %s)", self.name, token.generation)
            return False
        setter(response)
        return True

    def load(self, fetch: Callable[[], T], setter: Callable[[T], None]) -> Optional[T]:
        """Starts a load, fetches, and applies the result only if nothing newer started meanwhile."""
        token = self.start()
        response = fetch()
        if self.apply(token, response, setter):
            return response
        return None
