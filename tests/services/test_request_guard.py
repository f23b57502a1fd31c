import threading
import time

import pytest

from lmslocal.services.request_guard import InFlightGuard, LoadScope


class TestInFlightGuard:

    def test_runs_loader_and_returns_result(self):
        guard = InFlightGuard()
        assert guard.run("rounds", 1, lambda: "loaded") == "loaded"
        assert guard.is_in_flight("rounds", 1) is False

    def test_duplicate_request_joins_the_running_one(self):
        guard = InFlightGuard()
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_loader():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return "standings"

        results = []
        first = threading.Thread(target=lambda: results.append(guard.run("standings", 7, slow_loader)))
        first.start()
        assert started.wait(timeout=5)
        assert guard.is_in_flight("standings", 7)

        second = threading.Thread(target=lambda: results.append(guard.run("standings", 7, slow_loader)))
        second.start()
        time.sleep(0.2)  # let the second caller reach the latch
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert len(calls) == 1
        assert results == ["standings", "standings"]

    def test_different_ids_do_not_share(self):
        guard = InFlightGuard()
        assert guard.run("fixtures", 1, lambda: "a") == "a"
        assert guard.run("fixtures", 2, lambda: "b") == "b"

    def test_error_is_raised_and_latch_released(self):
        guard = InFlightGuard()

        def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            guard.run("rounds", 1, failing)
        assert guard.is_in_flight("rounds", 1) is False
        assert guard.run("rounds", 1, lambda: "retry") == "retry"


class TestLoadScope:

    def test_only_newest_load_applies(self):
        scope = LoadScope("standings")
        applied = []
        older = scope.start()
        newer = scope.start()

        assert scope.apply(older, "old data", applied.append) is False
        assert scope.apply(newer, "new data", applied.append) is True
        assert applied == ["new data"]

    def test_cancelled_scope_drops_responses(self):
        scope = LoadScope("standings")
        applied = []
        token = scope.start()
        scope.cancel()

        assert scope.apply(token, "late data", applied.append) is False
        assert applied == []
        assert token.is_current is False

    def test_cancelled_scope_refuses_new_loads(self):
        scope = LoadScope("standings")
        scope.cancel()
        with pytest.raises(RuntimeError, match="cancelled"):
            scope.start()

    def test_load_applies_fresh_response(self):
        scope = LoadScope("rounds")
        applied = []
        assert scope.load(lambda: [1, 2], applied.append) == [1, 2]
        assert applied == [[1, 2]]

    def test_load_overtaken_by_newer_load_is_dropped(self):
        scope = LoadScope("rounds")
        applied = []

        def fetch_while_newer_starts():
            scope.start()
            return "stale"

        assert scope.load(fetch_while_newer_starts, applied.append) is None
        assert applied == []
