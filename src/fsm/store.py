"""In-memory onboarding store.

Reference implementation of the OnboardingStore callbacks, used by the HTTP
app and tests. Records are dicts of persisted (camelCase) step data plus the
lifecycle fields the callbacks maintain.
"""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.utils.logger import log


class InMemoryOnboardingStore:
    """Dict-backed store: user id -> onboarding record."""

    def __init__(self, initial: Optional[Dict[Any, Dict[str, Any]]] = None):
        self._records: Dict[Any, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        for user_id, step_data in (initial or {}).items():
            self._records[user_id] = self._new_record(step_data)

    @staticmethod
    def _new_record(step_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {
            "step_data": dict(step_data or {}),
            "current_step": None,
            "status": "in_progress",
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def _record(self, user_id: Any) -> Dict[str, Any]:
        if user_id not in self._records:
            self._records[user_id] = self._new_record()
        return self._records[user_id]

    async def get_step_data(self, user_id: Any) -> Dict[str, Any]:
        return copy.deepcopy(self._record(user_id)["step_data"])

    async def update_step_data(self, user_id: Any, partial: Dict[str, Any]) -> None:
        """Merge a partial update; None values remove the key."""
        async with self._lock:
            record = self._record(user_id)
            for key, value in partial.items():
                if value is None:
                    record["step_data"].pop(key, None)
                else:
                    record["step_data"][key] = copy.deepcopy(value)
            record["updated_at"] = datetime.now(timezone.utc).isoformat()

    async def advance_step(self, user_id: Any, step: str) -> None:
        self._record(user_id)["current_step"] = step

    async def complete_onboarding(self, user_id: Any) -> None:
        self._record(user_id)["status"] = "completed"
        log.info(f"Onboarding completed for user {user_id}")

    async def skip_onboarding(self, user_id: Any) -> None:
        self._record(user_id)["status"] = "skipped"
        log.info(f"Onboarding skipped for user {user_id}")

    async def list_user_ids(self) -> List[Any]:
        return list(self._records)

    def get_status(self, user_id: Any) -> Optional[str]:
        record = self._records.get(user_id)
        return record["status"] if record else None

    def get_current_step(self, user_id: Any) -> Optional[str]:
        record = self._records.get(user_id)
        return record["current_step"] if record else None
