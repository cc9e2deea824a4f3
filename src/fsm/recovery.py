"""State recovery for onboarding records persisted without an explicit state."""

from typing import Any, Dict, Mapping, Union

from src.exceptions import StepDataValidationException
from src.fsm.models import FsmState, StepData
from src.utils.structured_logger import get_structured_logger

logger = get_structured_logger("fsm.recovery")


def derive_fsm_state_from_step_data(step_data: Union[StepData, Mapping[str, Any], None]) -> FsmState:
    """Infer the most plausible current state from persisted step data.

    An explicit `fsmState` wins. Otherwise the furthest milestone reached
    decides: verified sync, imported articles, discovered files, a connected
    integration, else the start of the flow.

    Args:
        step_data: StepData or the raw persisted dict

    Returns:
        Derived FsmState
    """
    if not isinstance(step_data, StepData):
        step_data = StepData.from_persisted(dict(step_data or {}))

    if step_data.fsm_state:
        return step_data.fsm_state
    if step_data.sync_triggered:
        return FsmState.SYNC_CONFIRMED
    if step_data.imported_articles:
        return FsmState.SYNC_EXPLAIN
    if step_data.discovered_files:
        return FsmState.DOC_ACTION_PROMPT
    if step_data.connected_integration:
        return FsmState.REPO_SCAN_PROMPT
    return FsmState.WELCOME


class OnboardingRecoveryManager:
    """Backfills `fsmState` for records written before states were persisted."""

    def __init__(self, store: Any):
        self.store = store

    async def backfill_fsm_states(self) -> Dict[str, int]:
        """Write the derived state onto every record that lacks one.

        Returns:
            Dict with recovery statistics
        """
        stats = {"scanned": 0, "backfilled": 0, "invalid": 0}

        for user_id in await self.store.list_user_ids():
            stats["scanned"] += 1
            raw = await self.store.get_step_data(user_id)
            try:
                step_data = StepData.from_persisted(raw)
            except StepDataValidationException as e:
                stats["invalid"] += 1
                logger.warning("Skipping invalid step data", user_id=user_id, error=str(e))
                continue

            if step_data.fsm_state:
                continue

            state = derive_fsm_state_from_step_data(step_data)
            await self.store.update_step_data(user_id, {"fsmState": state.value})
            stats["backfilled"] += 1
            logger.info("Backfilled FSM state", user_id=user_id, state=state.value)

        logger.info("FSM state backfill complete", **stats)
        return stats
