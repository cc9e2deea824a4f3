"""Onboarding FSM engine.

One call to `transition` processes exactly one user turn: global intents are
resolved in a pre-pass, then the current state's handler runs. Handlers
return a `Step`; when it asks to enter an auto state the engine runs that
state's handler too (trampoline) until a state that waits for the user.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from src.exceptions import (
    ErrorCode,
    InvalidTransitionException,
    StepDataValidationException,
    TransitionCycleException,
)
from src.fsm import responses
from src.fsm.models import (
    AUTO_STATES,
    CHANGE_GITHUB_STATES,
    REIMPORT_STATES,
    DocAction,
    FsmState,
    Intent,
    OnboardingEvent,
    ToolResult,
    TransitionResult,
    UiAction,
    content_event,
    tool_call_event,
    tool_result_event,
    ui_action_event,
)
from src.fsm.sync import detect_sync, snapshot_commit_sha
from src.services.intent import classify_by_pattern
from src.tools.utils import connect_repo_directly
from src.utils.repo_matcher import match_repo_name
from src.utils.structured_logger import get_structured_logger

logger = get_structured_logger("fsm.core")


@dataclass
class Step:
    """Outcome of one state handler.

    Attributes:
        state: Next state
        enter: Run `state`'s handler within this turn (auto states only)
    """

    state: FsmState
    enter: bool = False


Events = List[OnboardingEvent]
StateHandler = Callable[[Intent, Any, Events], Awaitable[Step]]

# Fields that only make sense for the repository they were computed from.
REPO_DERIVED_FIELDS = (
    "available_repos",
    "discovered_files",
    "gap_analysis_results",
    "last_known_commit_sha",
    "sync_triggered",
)

_IMPORTED_RE = re.compile(r"Imported:\s*(\d+)")
_SKIPPED_RE = re.compile(r"Skipped.*?:\s*(\d+)")
_FAILED_RE = re.compile(r"Failed:\s*(\d+)")


def _count(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match else 0


class TransitionEngine:
    """Drives the state table for a single onboarding turn."""

    def __init__(self):
        self._handlers: Dict[FsmState, StateHandler] = {
            FsmState.WELCOME: self._welcome,
            FsmState.GITHUB_CHECK: self._github_check,
            FsmState.GITHUB_INSTALL_PROMPT: self._github_install_prompt,
            FsmState.GITHUB_INSTALLING: self._github_installing,
            FsmState.GITHUB_REPO_PROMPT: self._github_repo_prompt,
            FsmState.GITHUB_REPO_SELECTING: self._github_repo_selecting,
            FsmState.REPO_SCAN_PROMPT: self._repo_scan_prompt,
            FsmState.REPO_SCANNING: self._repo_scanning,
            FsmState.DOC_ACTION_PROMPT: self._doc_action_prompt,
            FsmState.SPACE_CREATING: self._space_creating,
            FsmState.IMPORTING: self._importing,
            FsmState.GAP_ANALYSIS_PROMPT: self._gap_analysis_prompt,
            FsmState.GAP_ANALYZING: self._gap_analyzing,
            FsmState.GENERATE_PROMPT: self._generate_prompt,
            FsmState.GENERATING: self._generating,
            FsmState.SYNC_EXPLAIN: self._sync_explain,
            FsmState.SYNC_WAITING: self._sync_waiting,
            FsmState.SYNC_CHECKING: self._sync_checking,
            FsmState.SYNC_CONFIRMED: self._sync_confirmed,
            FsmState.COMPLETING: self._completing,
            FsmState.COMPLETED: self._completed,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def transition(
        self,
        state: Union[FsmState, str],
        intent_or_message: Union[Intent, str],
        context: Any,
    ) -> TransitionResult:
        """Process one user turn.

        Args:
            state: Current persisted state
            intent_or_message: A resolved intent, or the raw user message
            context: ToolContext for this turn

        Returns:
            TransitionResult. `unclassified=True` (state unchanged, no
            events) when a raw message matched no pattern rule.
        """
        try:
            current = FsmState(state)
        except ValueError:
            logger.warning(
                "Unknown FSM state, restarting onboarding",
                state=str(state),
                error_code=ErrorCode.UNKNOWN_STATE.value,
            )
            return TransitionResult(
                new_state=FsmState.WELCOME,
                events=[content_event(responses.welcome_message())],
            )

        intent = self._resolve_intent(current, intent_or_message, context)
        if intent is None:
            logger.info(
                "Message not classified by patterns",
                user_id=context.user_id,
                state=current.value,
            )
            return TransitionResult(new_state=current, events=[], unclassified=True)

        events: Events = []
        step = await self._global_intents(current, intent, context, events)
        if step is None:
            if intent == Intent.GOODBYE and current != FsmState.SYNC_CONFIRMED:
                intent = Intent.SKIP
            step = await self._handlers[current](intent, context, events)

        visited: Set[FsmState] = {current} if current in AUTO_STATES else set()
        path = [current.value]
        source = current
        while step.enter:
            if step.state not in AUTO_STATES:
                raise InvalidTransitionException(source.value, step.state.value)
            path.append(step.state.value)
            if step.state in visited:
                raise TransitionCycleException(step.state.value, path)
            visited.add(step.state)

            logger.log_transition(
                context.user_id, source.value, step.state.value, intent.value, chained=True
            )
            source = step.state
            step = await self._handlers[source](intent, context, events)

        logger.log_transition(
            context.user_id, source.value, step.state.value, intent.value, events=len(events)
        )
        return TransitionResult(new_state=step.state, events=events)

    # ------------------------------------------------------------------
    # Dispatch helpers
    # ------------------------------------------------------------------

    def _resolve_intent(
        self, state: FsmState, intent_or_message: Union[Intent, str], context: Any
    ) -> Optional[Intent]:
        if isinstance(intent_or_message, Intent):
            return intent_or_message
        text = str(intent_or_message or "")
        try:
            return Intent(text)
        except ValueError:
            pass

        intent = classify_by_pattern(text)
        if intent is None and state == FsmState.GITHUB_REPO_PROMPT:
            # A typed repo name needs no classifier.
            candidates = context.step_data.available_repos or []
            if match_repo_name(text, candidates):
                intent = Intent.OFF_TOPIC
        if intent is not None and context.user_message is None:
            context.user_message = text
        return intent

    async def _global_intents(
        self, state: FsmState, intent: Intent, context: Any, events: Events
    ) -> Optional[Step]:
        """Handle intents that apply regardless of state. None means "not handled"."""
        if state == FsmState.GITHUB_REPO_PROMPT and intent not in (Intent.SKIP, Intent.GOODBYE):
            matched = self._match_pending_repo(context)
            if matched:
                return await self._select_repo(matched, context, events)

        if intent == Intent.STATUS:
            events.append(content_event(responses.status_message(state, context.step_data)))
            return Step(state)

        if intent == Intent.HELP:
            events.append(content_event(responses.help_message(state)))
            return Step(state)

        if intent == Intent.OFF_TOPIC and state != FsmState.GITHUB_REPO_PROMPT:
            events.append(content_event(responses.off_topic_redirect(state)))
            return Step(state)

        if intent == Intent.CHANGE_GITHUB and state in CHANGE_GITHUB_STATES:
            events.append(content_event(responses.change_github_message()))
            await context.update_step_data({name: None for name in REPO_DERIVED_FIELDS})
            return Step(FsmState.GITHUB_CHECK, enter=True)

        if intent == Intent.REIMPORT and state in REIMPORT_STATES:
            events.append(content_event(responses.reimport_message()))
            await context.update_step_data(
                {"doc_action": None, "discovered_files": None, "gap_analysis_results": None}
            )
            return Step(FsmState.REPO_SCANNING, enter=True)

        return None

    def _match_pending_repo(self, context: Any) -> Optional[str]:
        candidates = context.step_data.available_repos or []
        if not candidates or not context.user_message:
            return None
        return match_repo_name(context.user_message, candidates)

    async def _run_tool(
        self,
        name: str,
        args: Optional[Dict[str, Any]],
        context: Any,
        events: Events,
    ) -> ToolResult:
        """Execute a registered tool, emitting tool_call, tool_result and ui_action events."""
        call = tool_call_event(name, args)
        events.append(call)

        result = await context.registry.execute(name, args or {}, context)
        events.append(tool_result_event(call.tool_call.id, name, result.content, result.success))
        if result.ui_action:
            events.append(ui_action_event(result.ui_action))
        return result

    def _repo_label(self, context: Any) -> str:
        return context.step_data.connected_repo or "your repository"

    # ------------------------------------------------------------------
    # GitHub connection
    # ------------------------------------------------------------------

    async def _welcome(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            result = await self._run_tool("skip_onboarding", {}, context, events)
            events.append(content_event(result.content))
            return Step(FsmState.COMPLETED)

        if intent == Intent.CONFIRM:
            return Step(FsmState.GITHUB_CHECK, enter=True)

        events.append(content_event(responses.welcome_message()))
        return Step(FsmState.WELCOME)

    async def _github_check(self, intent: Intent, context: Any, events: Events) -> Step:
        result = await self._run_tool("check_github_status", {}, context, events)
        if not result.success:
            events.append(content_event(responses.github_check_failed()))
            return Step(FsmState.GITHUB_INSTALL_PROMPT)

        try:
            status = json.loads(result.content)
        except ValueError:
            logger.warning("Unparsable GitHub status", user_id=context.user_id, content=result.content[:200])
            events.append(content_event(responses.github_install_prompt()))
            return Step(FsmState.GITHUB_INSTALL_PROMPT)

        if status.get("status") == "connected":
            try:
                await context.update_step_data(
                    {
                        "connected_integration": status.get("integrationId"),
                        "connected_repo": status.get("repo"),
                        "connected_installation_id": status.get("installationId"),
                    }
                )
            except StepDataValidationException as e:
                logger.error(
                    "Connected integration rejected by step data",
                    user_id=context.user_id,
                    error=str(e),
                    error_code=e.error_code.value,
                )
                events.append(content_event(responses.github_check_failed()))
                return Step(FsmState.GITHUB_INSTALL_PROMPT)
            await context.advance_step("scan_repos")
            events.append(
                content_event(
                    responses.github_already_connected(status.get("repo"), status.get("branch") or "main")
                )
            )
            return Step(FsmState.REPO_SCAN_PROMPT)

        if status.get("status") == "installed":
            available_repos: List[str] = []
            for installation in status.get("installations") or []:
                available_repos.extend(installation.get("repos") or [])
            await context.update_step_data({"available_repos": available_repos})

            if len(available_repos) == 1:
                return await self._select_repo(available_repos[0], context, events)

            events.append(content_event(responses.github_repo_prompt(available_repos)))
            return Step(FsmState.GITHUB_REPO_PROMPT)

        events.append(content_event(responses.github_install_prompt()))
        return Step(FsmState.GITHUB_INSTALL_PROMPT)

    async def _github_install_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            events.append(content_event(responses.repo_scan_prompt(self._repo_label(context))))
            return Step(FsmState.REPO_SCAN_PROMPT)

        if intent == Intent.CONFIRM:
            await self._run_tool("install_github_app", {}, context, events)
            events.append(content_event(responses.github_waiting("install")))
            return Step(FsmState.GITHUB_INSTALLING)

        events.append(content_event(responses.github_install_prompt()))
        return Step(FsmState.GITHUB_INSTALL_PROMPT)

    async def _github_installing(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent in (Intent.GITHUB_DONE, Intent.CONFIRM):
            return Step(FsmState.GITHUB_CHECK, enter=True)

        if intent == Intent.SKIP:
            events.append(content_event(responses.repo_scan_prompt(self._repo_label(context))))
            return Step(FsmState.REPO_SCAN_PROMPT)

        events.append(content_event(responses.github_waiting("install")))
        return Step(FsmState.GITHUB_INSTALLING)

    async def _github_repo_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        available_repos = context.step_data.available_repos or []

        if intent == Intent.SKIP:
            events.append(content_event(responses.repo_scan_prompt(self._repo_label(context))))
            return Step(FsmState.REPO_SCAN_PROMPT)

        if intent == Intent.CONFIRM and len(available_repos) == 1:
            return await self._select_repo(available_repos[0], context, events)

        if intent == Intent.CONFIRM and len(available_repos) > 1:
            events.append(content_event(responses.github_repo_prompt(available_repos)))
            return Step(FsmState.GITHUB_REPO_PROMPT)

        if intent == Intent.CONFIRM:
            await self._run_tool("connect_github_repo", {}, context, events)
            events.append(content_event(responses.github_waiting("select")))
            return Step(FsmState.GITHUB_REPO_SELECTING)

        if available_repos and context.user_message:
            events.append(content_event(responses.repo_not_found(context.user_message, available_repos)))
            return Step(FsmState.GITHUB_REPO_PROMPT)

        events.append(content_event(responses.github_repo_prompt(available_repos)))
        return Step(FsmState.GITHUB_REPO_PROMPT)

    async def _github_repo_selecting(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent in (Intent.GITHUB_DONE, Intent.CONFIRM):
            return Step(FsmState.GITHUB_CHECK, enter=True)

        if intent == Intent.SKIP:
            events.append(content_event(responses.repo_scan_prompt(self._repo_label(context))))
            return Step(FsmState.REPO_SCAN_PROMPT)

        events.append(content_event(responses.github_waiting("select")))
        return Step(FsmState.GITHUB_REPO_SELECTING)

    async def _select_repo(self, repo: str, context: Any, events: Events) -> Step:
        """Connect a repository chosen in chat and move on to scanning."""
        call = tool_call_event("connect_repo_direct", {"repository": repo})
        events.append(call)

        try:
            connection = await connect_repo_directly(repo, context)
            if connection:
                await context.update_step_data(
                    {
                        "connected_integration": connection["integration_id"],
                        "connected_repo": repo,
                        "connected_installation_id": connection["installation_id"],
                    }
                )
        except Exception as e:
            logger.error("Direct repo connection failed", user_id=context.user_id, repo=repo, error=str(e))
            connection = None

        if not connection:
            events.append(
                tool_result_event(
                    call.tool_call.id, "connect_repo_direct", "Failed to find installation for repo", False
                )
            )
            events.append(content_event(responses.repo_connect_failed(repo)))
            return Step(FsmState.GITHUB_REPO_PROMPT)

        events.append(
            tool_result_event(
                call.tool_call.id,
                "connect_repo_direct",
                f"Connected to {repo} (integration={connection['integration_id']})",
                True,
            )
        )
        await context.advance_step("scan_repos")
        events.append(content_event(responses.repo_scan_prompt(repo)))
        return Step(FsmState.REPO_SCAN_PROMPT)

    # ------------------------------------------------------------------
    # Scan, space and import
    # ------------------------------------------------------------------

    async def _repo_scan_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            events.append(content_event(responses.sync_explanation()))
            return Step(FsmState.SYNC_EXPLAIN)

        if intent == Intent.CONFIRM:
            return Step(FsmState.REPO_SCANNING, enter=True)

        events.append(content_event(responses.repo_scan_prompt(self._repo_label(context))))
        return Step(FsmState.REPO_SCAN_PROMPT)

    async def _repo_scanning(self, intent: Intent, context: Any, events: Events) -> Step:
        repo = context.step_data.connected_repo
        if not repo:
            events.append(content_event(responses.no_repo_connected()))
            return Step(FsmState.GITHUB_CHECK, enter=True)

        result = await self._run_tool("scan_repository", {"repository": repo}, context, events)
        if not result.success:
            events.append(content_event(result.content))

        files = context.step_data.discovered_files or []
        if files:
            events.append(content_event(responses.scan_results(repo, files)))
        else:
            events.append(content_event(responses.doc_action_prompt_no_files()))
        return Step(FsmState.DOC_ACTION_PROMPT)

    async def _doc_action_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            events.append(content_event(responses.sync_explanation()))
            return Step(FsmState.SYNC_EXPLAIN)

        files = context.step_data.discovered_files or []
        doc_action = {
            Intent.IMPORT: DocAction.IMPORT,
            Intent.GENERATE: DocAction.GENERATE,
            Intent.BOTH: DocAction.BOTH,
        }.get(intent)
        if intent == Intent.CONFIRM:
            doc_action = DocAction.BOTH if files else DocAction.GENERATE

        if doc_action is not None:
            await context.update_step_data({"doc_action": doc_action})
            return Step(FsmState.SPACE_CREATING, enter=True)

        if files:
            events.append(content_event(responses.scan_results(self._repo_label(context), files)))
        else:
            events.append(content_event(responses.doc_action_prompt_no_files()))
        return Step(FsmState.DOC_ACTION_PROMPT)

    async def _space_creating(self, intent: Intent, context: Any, events: Events) -> Step:
        repo = context.step_data.connected_repo
        if not repo:
            events.append(content_event(responses.no_repo_connected()))
            return Step(FsmState.GITHUB_CHECK, enter=True)

        result = await self._run_tool("get_or_create_space", {"repository": repo}, context, events)
        if result.success:
            try:
                space = json.loads(result.content)
            except ValueError:
                space = {}
            name = space.get("name") or repo
            events.append(content_event(responses.space_created(name, bool(space.get("created", False)))))
            events.append(ui_action_event(UiAction(type="space_created", message=name)))
        else:
            events.append(content_event(result.content))

        # IMPORTING is handed back un-run so the caller can show progress first.
        if context.step_data.doc_action in (DocAction.IMPORT, DocAction.BOTH):
            events.append(
                content_event(responses.importing_started(len(context.step_data.discovered_files or [])))
            )
            return Step(FsmState.IMPORTING)

        has_gaps = bool(context.step_data.gap_analysis_results)
        events.append(content_event(responses.generate_prompt(has_gaps)))
        return Step(FsmState.GENERATE_PROMPT)

    async def _importing(self, intent: Intent, context: Any, events: Events) -> Step:
        logger.info(
            "Running bulk import",
            user_id=context.user_id,
            files=len(context.step_data.discovered_files or []),
            space_id=context.step_data.space_id,
            repo=context.step_data.connected_repo,
        )
        result = await self._run_tool("import_all_markdown", {}, context, events)

        if not result.success:
            logger.warning("Import tool failed", user_id=context.user_id, content=result.content[:200])
            events.append(content_event(responses.import_error(result.content)))
            return Step(FsmState.GAP_ANALYSIS_PROMPT)

        events.append(
            content_event(
                responses.import_complete(
                    _count(_IMPORTED_RE, result.content),
                    _count(_SKIPPED_RE, result.content),
                    _count(_FAILED_RE, result.content),
                )
            )
        )
        await snapshot_commit_sha(context)
        return Step(FsmState.GAP_ANALYSIS_PROMPT)

    # ------------------------------------------------------------------
    # Gap analysis and generation
    # ------------------------------------------------------------------

    async def _gap_analysis_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            if context.step_data.doc_action == DocAction.BOTH:
                has_gaps = bool(context.step_data.gap_analysis_results)
                events.append(content_event(responses.generate_prompt(has_gaps)))
                return Step(FsmState.GENERATE_PROMPT)
            events.append(content_event(responses.sync_explanation()))
            return Step(FsmState.SYNC_EXPLAIN)

        if intent == Intent.CONFIRM:
            return Step(FsmState.GAP_ANALYZING, enter=True)

        events.append(content_event(responses.gap_analysis_prompt()))
        return Step(FsmState.GAP_ANALYSIS_PROMPT)

    async def _gap_analyzing(self, intent: Intent, context: Any, events: Events) -> Step:
        result = await self._run_tool("gap_analysis", {}, context, events)
        if not result.success:
            events.append(content_event(result.content))

        gaps = context.step_data.gap_analysis_results or []
        events.append(content_event(responses.gap_analysis_results(gaps)))

        if context.step_data.doc_action == DocAction.IMPORT:
            events.append(content_event(responses.sync_explanation()))
            return Step(FsmState.SYNC_EXPLAIN)

        events.append(content_event(responses.generate_prompt(bool(gaps))))
        return Step(FsmState.GENERATE_PROMPT)

    async def _generate_prompt(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            events.append(content_event(responses.sync_explanation()))
            return Step(FsmState.SYNC_EXPLAIN)

        if intent == Intent.CONFIRM:
            return Step(FsmState.GENERATING, enter=True)

        has_gaps = bool(context.step_data.gap_analysis_results)
        events.append(content_event(responses.generate_prompt(has_gaps)))
        return Step(FsmState.GENERATE_PROMPT)

    async def _generating(self, intent: Intent, context: Any, events: Events) -> Step:
        result = await self._run_tool("generate_from_code", {}, context, events)
        if result.success:
            step_data = context.step_data
            count = step_data.generated_count
            if count is None:
                count = len(step_data.generated_articles or [])
            events.append(content_event(responses.generate_complete(count)))
        else:
            events.append(content_event(result.content))

        events.append(content_event(responses.sync_explanation()))
        return Step(FsmState.SYNC_EXPLAIN)

    # ------------------------------------------------------------------
    # Sync verification and completion
    # ------------------------------------------------------------------

    async def _sync_explain(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            return Step(FsmState.COMPLETING, enter=True)

        if context.step_data.sync_triggered:
            events.append(content_event(responses.sync_detected()))
            return Step(FsmState.SYNC_CONFIRMED)

        if intent in (Intent.CONFIRM, Intent.CHECK):
            if not context.step_data.last_known_commit_sha:
                await snapshot_commit_sha(context)

            if await detect_sync(context):
                events.append(content_event(responses.sync_detected()))
                return Step(FsmState.SYNC_CONFIRMED)

            events.append(content_event(responses.sync_waiting()))
            return Step(FsmState.SYNC_WAITING)

        events.append(content_event(responses.sync_explanation()))
        return Step(FsmState.SYNC_EXPLAIN)

    async def _sync_waiting(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent == Intent.SKIP:
            return Step(FsmState.COMPLETING, enter=True)

        if intent in (Intent.CHECK, Intent.CONFIRM):
            return Step(FsmState.SYNC_CHECKING, enter=True)

        events.append(content_event(responses.sync_waiting()))
        return Step(FsmState.SYNC_WAITING)

    async def _sync_checking(self, intent: Intent, context: Any, events: Events) -> Step:
        if await detect_sync(context):
            events.append(content_event(responses.sync_detected()))
            return Step(FsmState.SYNC_CONFIRMED)

        events.append(content_event(responses.sync_not_detected()))
        return Step(FsmState.SYNC_WAITING)

    async def _sync_confirmed(self, intent: Intent, context: Any, events: Events) -> Step:
        if intent in (Intent.GOODBYE, Intent.SKIP):
            return Step(FsmState.COMPLETING, enter=True)

        events.append(content_event(responses.help_message(FsmState.SYNC_CONFIRMED)))
        return Step(FsmState.SYNC_CONFIRMED)

    async def _completing(self, intent: Intent, context: Any, events: Events) -> Step:
        result = await self._run_tool("complete_onboarding", {}, context, events)
        if not result.success:
            logger.info(
                "Completion precondition failed, skipping onboarding instead",
                user_id=context.user_id,
                reason=result.content,
                error_code=ErrorCode.PRECONDITION_FAILED.value,
            )
            await context.skip_onboarding()

        events.append(content_event(responses.completion_summary(context.step_data)))
        return Step(FsmState.COMPLETED)

    async def _completed(self, intent: Intent, context: Any, events: Events) -> Step:
        events.append(content_event(responses.already_completed()))
        return Step(FsmState.COMPLETED)


engine = TransitionEngine()


async def transition(
    state: Union[FsmState, str],
    intent_or_message: Union[Intent, str],
    context: Any,
) -> TransitionResult:
    """Process one user turn with the module-level engine."""
    return await engine.transition(state, intent_or_message, context)
