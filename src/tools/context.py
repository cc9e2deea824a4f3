"""Execution context handed to onboarding tools and the FSM engine.

The context owns nothing durable: step data lives in the caller's store and
is mutated only through `update_step_data`.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError

from src.exceptions import StepDataValidationException
from src.fsm.models import StepData
from src.integrations.github import GitHubClient
from src.tools.builtin import create_default_registry
from src.tools.registry import ToolRegistry


class OnboardingStore(Protocol):
    """Persistence callbacks for one onboarding record per user."""

    async def get_step_data(self, user_id: Any) -> Dict[str, Any]: ...

    async def update_step_data(self, user_id: Any, partial: Dict[str, Any]) -> None: ...

    async def advance_step(self, user_id: Any, step: str) -> None: ...

    async def complete_onboarding(self, user_id: Any) -> None: ...

    async def skip_onboarding(self, user_id: Any) -> None: ...

    async def list_user_ids(self) -> List[Any]: ...


TokenProvider = Callable[[Union[int, str]], Awaitable[Optional[str]]]


@dataclass
class ToolContext:
    """Everything a tool or state handler may touch during one turn."""

    user_id: Any
    step_data: StepData
    store: OnboardingStore
    integration_dao: Any = None
    doc_dao: Any = None
    doc_draft_dao: Any = None
    github_installation_dao: Any = None
    space_dao: Any = None
    user_preference_dao: Any = None
    github: GitHubClient = field(default_factory=GitHubClient)
    token_provider: Optional[TokenProvider] = None
    registry: ToolRegistry = field(default_factory=create_default_registry)

    @property
    def user_message(self) -> Optional[str]:
        """Raw text of the current turn (never persisted)."""
        return self.step_data.user_message

    @user_message.setter
    def user_message(self, value: Optional[str]) -> None:
        self.step_data.user_message = value

    async def update_step_data(self, partial: Dict[str, Any]) -> None:
        """Merge `partial` into the local step data, then persist it.

        Keys may be snake_case or the persisted camelCase names. Explicit
        None values clear a field.

        Raises:
            StepDataValidationException: If the merged data is invalid
        """
        merged = self.step_data.model_dump(by_alias=False)
        for key, value in partial.items():
            merged[_field_name(key)] = value
        try:
            updated = StepData.model_validate(merged)
        except ValidationError as e:
            raise StepDataValidationException(reason=str(e), original_exception=e) from e

        updated.user_message = self.step_data.user_message
        self.step_data = updated

        persisted = updated.to_persisted()
        aliases = {_FIELD_TO_ALIAS[_field_name(key)] for key in partial}
        aliases.discard("userMessage")
        await self.store.update_step_data(
            self.user_id, {alias: persisted.get(alias) for alias in aliases}
        )

    async def advance_step(self, step: str) -> None:
        await self.store.advance_step(self.user_id, step)

    async def complete_onboarding(self) -> None:
        await self.store.complete_onboarding(self.user_id)

    async def skip_onboarding(self) -> None:
        await self.store.skip_onboarding(self.user_id)


_ALIAS_TO_FIELD = {
    info.alias or name: name for name, info in StepData.model_fields.items()
}
_FIELD_TO_ALIAS = {name: alias for alias, name in _ALIAS_TO_FIELD.items()}


def _field_name(key: str) -> str:
    name = _ALIAS_TO_FIELD.get(key, key)
    if name not in _FIELD_TO_ALIAS:
        raise StepDataValidationException(reason=f"unknown step data field: {key}")
    return name
