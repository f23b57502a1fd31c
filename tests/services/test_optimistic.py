import pytest

from lmslocal.services.optimistic import OptimisticValue, ResourceState


@pytest.fixture
def pick():
    return OptimisticValue({"team": "ARS"}, name="pick")


class TestOptimisticValue:

    def test_starts_clean(self, pick):
        assert pick.state == ResourceState.CLEAN
        assert pick.value == {"team": "ARS"}

    def test_apply_then_confirm(self, pick):
        pick.apply({"team": "LIV"})
        assert pick.state == ResourceState.OPTIMISTIC_PENDING
        assert pick.value == {"team": "LIV"}

        pick.confirm()
        assert pick.state == ResourceState.CONFIRMED
        assert pick.value == {"team": "LIV"}

    def test_confirm_can_take_server_value(self, pick):
        pick.apply({"team": "LIV"})
        pick.confirm({"team": "LIV", "fixture_id": 7})
        assert pick.value == {"team": "LIV", "fixture_id": 7}

    def test_revert_restores_prior_value_exactly(self, pick):
        original = dict(pick.value)
        pick.apply({"team": "LIV"})
        pick.revert()
        assert pick.state == ResourceState.REVERTED
        assert pick.value == original

    def test_prior_value_is_a_snapshot(self):
        value = OptimisticValue({"teams": ["ARS"]})
        value.value["teams"].append("CHE")  # mutated in place before an apply
        value.apply({"teams": []})
        value.revert()
        assert value.value == {"teams": ["ARS", "CHE"]}

    def test_second_apply_while_pending_is_rejected(self, pick):
        pick.apply({"team": "LIV"})
        with pytest.raises(ValueError, match="pending change"):
            pick.apply({"team": "MCI"})

    @pytest.mark.parametrize("action", ["confirm", "revert"])
    def test_confirm_or_revert_without_pending_change(self, pick, action):
        with pytest.raises(ValueError, match="in state clean"):
            getattr(pick, action)()

    def test_can_apply_again_after_revert(self, pick):
        pick.apply({"team": "LIV"})
        pick.revert()
        pick.apply({"team": "MCI"})
        assert pick.is_pending

    def test_reset_refused_while_pending(self, pick):
        pick.apply({"team": "LIV"})
        with pytest.raises(ValueError):
            pick.reset({"team": "CHE"})
