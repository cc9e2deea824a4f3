"""Pydantic models for the onboarding FSM.

This module defines the states, intents, persisted step data and the
events a single user turn produces.
"""
import time
import uuid
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.exceptions import StepDataValidationException


class FsmState(str, Enum):
    """Onboarding conversation states.

    Prompt states wait for the next user message. Auto states run a tool
    and compute their successor without consuming a message.
    """

    # Prompt states
    WELCOME = "WELCOME"
    GITHUB_INSTALL_PROMPT = "GITHUB_INSTALL_PROMPT"
    GITHUB_REPO_PROMPT = "GITHUB_REPO_PROMPT"
    REPO_SCAN_PROMPT = "REPO_SCAN_PROMPT"
    DOC_ACTION_PROMPT = "DOC_ACTION_PROMPT"
    GAP_ANALYSIS_PROMPT = "GAP_ANALYSIS_PROMPT"
    GENERATE_PROMPT = "GENERATE_PROMPT"
    SYNC_EXPLAIN = "SYNC_EXPLAIN"
    SYNC_WAITING = "SYNC_WAITING"
    SYNC_CONFIRMED = "SYNC_CONFIRMED"
    COMPLETED = "COMPLETED"

    # Auto states
    GITHUB_CHECK = "GITHUB_CHECK"
    GITHUB_INSTALLING = "GITHUB_INSTALLING"
    GITHUB_REPO_SELECTING = "GITHUB_REPO_SELECTING"
    REPO_SCANNING = "REPO_SCANNING"
    SPACE_CREATING = "SPACE_CREATING"
    IMPORTING = "IMPORTING"
    GAP_ANALYZING = "GAP_ANALYZING"
    GENERATING = "GENERATING"
    SYNC_CHECKING = "SYNC_CHECKING"
    COMPLETING = "COMPLETING"


PROMPT_STATES: FrozenSet[FsmState] = frozenset(
    {
        FsmState.WELCOME,
        FsmState.GITHUB_INSTALL_PROMPT,
        FsmState.GITHUB_REPO_PROMPT,
        FsmState.REPO_SCAN_PROMPT,
        FsmState.DOC_ACTION_PROMPT,
        FsmState.GAP_ANALYSIS_PROMPT,
        FsmState.GENERATE_PROMPT,
        FsmState.SYNC_EXPLAIN,
        FsmState.SYNC_WAITING,
        FsmState.SYNC_CONFIRMED,
        FsmState.COMPLETED,
    }
)

AUTO_STATES: FrozenSet[FsmState] = frozenset(set(FsmState) - PROMPT_STATES)

# Auto states handed back to the caller un-run; the turn driver re-enters
# them immediately so the UI can render progress before the slow tool runs.
RESUMABLE_STATES: FrozenSet[FsmState] = frozenset({FsmState.IMPORTING})

# Prompt states past the GitHub connection step, where "change repo" is honoured.
CHANGE_GITHUB_STATES: FrozenSet[FsmState] = frozenset(
    {
        FsmState.REPO_SCAN_PROMPT,
        FsmState.DOC_ACTION_PROMPT,
        FsmState.GAP_ANALYSIS_PROMPT,
        FsmState.GENERATE_PROMPT,
        FsmState.SYNC_EXPLAIN,
        FsmState.SYNC_WAITING,
        FsmState.SYNC_CONFIRMED,
    }
)

# Prompt states past the doc-action choice, where "import again" is honoured.
REIMPORT_STATES: FrozenSet[FsmState] = frozenset(
    {
        FsmState.GAP_ANALYSIS_PROMPT,
        FsmState.GENERATE_PROMPT,
        FsmState.SYNC_EXPLAIN,
        FsmState.SYNC_WAITING,
        FsmState.SYNC_CONFIRMED,
    }
)


class Intent(str, Enum):
    """Closed set of user intents understood by the engine."""

    CONFIRM = "confirm"
    SKIP = "skip"
    CHECK = "check"
    GITHUB_DONE = "github_done"
    IMPORT = "import"
    GENERATE = "generate"
    BOTH = "both"
    CHANGE_GITHUB = "change_github"
    REIMPORT = "reimport"
    STATUS = "status"
    HELP = "help"
    GOODBYE = "goodbye"
    OFF_TOPIC = "off_topic"


class DocAction(str, Enum):
    """What the user chose to do with the repository's documentation."""

    IMPORT = "import"
    GENERATE = "generate"
    BOTH = "both"


class GapSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GapResult(BaseModel):
    """One documentation gap found by the gap analysis tool."""

    title: str
    description: str = ""
    severity: GapSeverity = GapSeverity.MEDIUM


STEP_DATA_VERSION = 1


class StepData(BaseModel):
    """Persisted onboarding progress for one user.

    Field names are snake_case in Python and camelCase in the persisted
    JSON. Every field is optional; `user_message` is per-turn only and is
    never persisted.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )

    version: int = STEP_DATA_VERSION
    fsm_state: Optional[FsmState] = None
    connected_integration: Optional[Union[int, str]] = None
    connected_installation_id: Optional[Union[int, str]] = None
    connected_repo: Optional[str] = None
    available_repos: Optional[List[str]] = None
    discovered_files: Optional[List[str]] = None
    doc_action: Optional[DocAction] = None
    space_id: Optional[Union[int, str]] = None
    space_name: Optional[str] = None
    imported_articles: Optional[List[str]] = None
    generated_articles: Optional[List[str]] = None
    generated_count: Optional[int] = None
    gap_analysis_results: Optional[List[GapResult]] = None
    sync_triggered: Optional[bool] = None
    last_known_commit_sha: Optional[str] = None
    last_sync_time: Optional[str] = None
    user_message: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def from_persisted(cls, raw: Optional[Dict[str, Any]]) -> "StepData":
        """Validate persisted step data at the storage boundary.

        Args:
            raw: JSON object as stored (camelCase or snake_case keys)

        Returns:
            Validated StepData

        Raises:
            StepDataValidationException: If the stored data is malformed
        """
        try:
            return cls.model_validate(raw or {})
        except ValidationError as e:
            raise StepDataValidationException(
                reason=str(e), original_exception=e
            ) from e

    def to_persisted(self) -> Dict[str, Any]:
        """Dump to the persisted camelCase shape, dropping unset values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPayload(BaseModel):
    tool_call_id: str
    name: str
    content: str
    success: bool


class UiAction(BaseModel):
    """Instruction for the chat UI (open a dialog, refresh the sidebar, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str
    message: Optional[str] = None


class ToolResult(BaseModel):
    """Uniform result shape returned by every onboarding tool."""

    success: bool
    content: str
    ui_action: Optional[UiAction] = None


EventType = Literal["content", "tool_call", "tool_result", "ui_action", "done"]


class OnboardingEvent(BaseModel):
    """One item the chat UI renders for a turn."""

    type: EventType
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResultPayload] = None
    ui_action: Optional[UiAction] = None
    state: Optional[FsmState] = None


def content_event(text: str) -> OnboardingEvent:
    return OnboardingEvent(type="content", content=text)


def tool_call_event(name: str, arguments: Optional[Dict[str, Any]] = None) -> OnboardingEvent:
    call_id = f"tc-{int(time.time() * 1000)}-{uuid.uuid4().hex[:5]}"
    return OnboardingEvent(
        type="tool_call",
        tool_call=ToolCall(id=call_id, name=name, arguments=arguments or {}),
    )


def tool_result_event(tool_call_id: str, name: str, content: str, success: bool) -> OnboardingEvent:
    return OnboardingEvent(
        type="tool_result",
        tool_result=ToolResultPayload(
            tool_call_id=tool_call_id, name=name, content=content, success=success
        ),
    )


def ui_action_event(action: UiAction) -> OnboardingEvent:
    return OnboardingEvent(type="ui_action", ui_action=action)


def done_event(state: FsmState) -> OnboardingEvent:
    return OnboardingEvent(type="done", state=state)


class TransitionResult(BaseModel):
    """Result of processing one user turn.

    Attributes:
        new_state: State to persist after the turn
        events: Ordered events for the chat UI
        unclassified: True when a raw message matched no pattern rule and
            must be classified by the external (LLM) classifier first
    """

    new_state: FsmState
    events: List[OnboardingEvent] = Field(default_factory=list)
    unclassified: bool = False
