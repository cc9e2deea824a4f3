"""Tests for state derivation, backfill and the in-memory store."""

import pytest

from src.exceptions import StepDataValidationException
from src.fsm.models import FsmState, StepData
from src.fsm.recovery import OnboardingRecoveryManager, derive_fsm_state_from_step_data
from src.fsm.store import InMemoryOnboardingStore


@pytest.mark.unit
class TestDeriveFsmState:
    """Furthest milestone wins when no explicit state is stored."""

    @pytest.mark.parametrize(
        "step_data,expected",
        [
            ({}, FsmState.WELCOME),
            (None, FsmState.WELCOME),
            ({"syncTriggered": True}, FsmState.SYNC_CONFIRMED),
            ({"importedArticles": ["a"], "connectedIntegration": 7}, FsmState.SYNC_EXPLAIN),
            ({"importedArticles": [], "discoveredFiles": ["README.md"]}, FsmState.DOC_ACTION_PROMPT),
            ({"connectedIntegration": 7}, FsmState.REPO_SCAN_PROMPT),
            ({"fsmState": "GENERATE_PROMPT", "syncTriggered": True}, FsmState.GENERATE_PROMPT),
        ],
    )
    def test_derivation(self, step_data, expected):
        assert derive_fsm_state_from_step_data(step_data) == expected

    def test_accepts_step_data_model(self):
        assert derive_fsm_state_from_step_data(StepData(sync_triggered=True)) == FsmState.SYNC_CONFIRMED

    def test_invalid_data_raises(self):
        with pytest.raises(StepDataValidationException):
            derive_fsm_state_from_step_data({"fsmState": "UNKNOWN"})


@pytest.mark.unit
class TestStepDataBoundary:
    def test_round_trip_uses_camel_case_and_drops_none(self):
        data = StepData.from_persisted(
            {"fsmState": "SYNC_WAITING", "connectedRepo": "acme/docs", "someFutureField": 1}
        )
        data.user_message = "check"

        assert data.to_persisted() == {
            "version": 1,
            "fsmState": "SYNC_WAITING",
            "connectedRepo": "acme/docs",
        }

    def test_snake_case_keys_are_accepted(self):
        assert StepData.from_persisted({"connected_repo": "acme/docs"}).connected_repo == "acme/docs"

    def test_ids_may_be_integers_or_strings(self):
        data = StepData.from_persisted(
            {"connectedIntegration": 7, "connectedInstallationId": "inst_42", "spaceId": "spc_9"}
        )
        assert data.connected_integration == 7
        assert data.connected_installation_id == "inst_42"
        assert data.space_id == "spc_9"

    def test_wrong_type_raises(self):
        with pytest.raises(StepDataValidationException):
            StepData.from_persisted({"discoveredFiles": "README.md"})


@pytest.mark.unit
class TestBackfill:
    @pytest.mark.asyncio
    async def test_backfills_only_missing_states(self):
        store = InMemoryOnboardingStore(
            {
                1: {"connectedIntegration": 7},
                2: {"fsmState": "SYNC_WAITING"},
                3: {"discoveredFiles": 5},
                4: {},
            }
        )

        stats = await OnboardingRecoveryManager(store).backfill_fsm_states()

        assert stats == {"scanned": 4, "backfilled": 2, "invalid": 1}
        assert (await store.get_step_data(1))["fsmState"] == "REPO_SCAN_PROMPT"
        assert (await store.get_step_data(2))["fsmState"] == "SYNC_WAITING"
        assert "fsmState" not in await store.get_step_data(3)
        assert (await store.get_step_data(4))["fsmState"] == "WELCOME"


@pytest.mark.unit
class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_partial_updates_merge_and_clear(self):
        store = InMemoryOnboardingStore()
        await store.update_step_data("u", {"connectedRepo": "acme/docs", "syncTriggered": True})
        await store.update_step_data("u", {"syncTriggered": None, "spaceId": 2})
        assert await store.get_step_data("u") == {"connectedRepo": "acme/docs", "spaceId": 2}

    @pytest.mark.asyncio
    async def test_returned_data_is_a_copy(self):
        store = InMemoryOnboardingStore({"u": {"discoveredFiles": ["a.md"]}})
        data = await store.get_step_data("u")
        data["discoveredFiles"].append("b.md")
        assert (await store.get_step_data("u"))["discoveredFiles"] == ["a.md"]

    @pytest.mark.asyncio
    async def test_lifecycle(self):
        store = InMemoryOnboardingStore()
        await store.advance_step("u", "scan_repos")
        assert store.get_current_step("u") == "scan_repos"
        assert store.get_status("u") == "in_progress"
        await store.complete_onboarding("u")
        assert store.get_status("u") == "completed"
        await store.skip_onboarding("v")
        assert store.get_status("v") == "skipped"
        assert await store.list_user_ids() == ["u", "v"]
        assert store.get_status("missing") is None
