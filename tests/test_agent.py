"""Tests for the onboarding agent (one chat turn end to end)."""

from unittest.mock import AsyncMock, Mock

import pytest

from src.fsm.models import FsmState, Intent
from src.services.intent import IntentClassifier, IntentDecision
from src.services.onboarding_agent import OnboardingAgent


async def run_turn(agent, message, context):
    return [event async for event in agent.chat(message, context)]


@pytest.mark.fsm
class TestOnboardingAgent:
    """Classification, resumable states and state persistence."""

    def setup_method(self):
        """Set up an agent without an LLM fallback."""
        self.agent = OnboardingAgent(classifier=IntentClassifier(llm=None))

    @pytest.mark.asyncio
    async def test_turn_ends_with_done_and_persists_state(self, make_context, mock_store):
        ctx = make_context()

        events = await run_turn(self.agent, "yes", ctx)

        assert events[-1].type == "done"
        assert events[-1].state == FsmState.GITHUB_INSTALL_PROMPT
        assert ctx.step_data.fsm_state == FsmState.GITHUB_INSTALL_PROMPT
        mock_store.update_step_data.assert_awaited_with(1, {"fsmState": "GITHUB_INSTALL_PROMPT"})

    @pytest.mark.asyncio
    async def test_state_is_derived_when_missing(self, make_context):
        ctx = make_context({"connectedIntegration": 7, "connectedRepo": "acme/docs"})
        events = await run_turn(self.agent, "skip", ctx)
        # REPO_SCAN_PROMPT + skip
        assert events[-1].state == FsmState.SYNC_EXPLAIN

    @pytest.mark.asyncio
    async def test_import_progress_is_yielded_before_import_runs(self, make_context, host_tools):
        ctx = make_context(
            {
                "fsmState": "DOC_ACTION_PROMPT",
                "connectedRepo": "acme/docs",
                "discoveredFiles": ["README.md", "guide.md"],
            }
        )

        events = await run_turn(self.agent, "import", ctx)

        progress = next(i for i, e in enumerate(events) if e.type == "content" and "Importing **2**" in e.content)
        import_call = next(
            i for i, e in enumerate(events) if e.type == "tool_call" and e.tool_call.name == "import_all_markdown"
        )
        assert progress < import_call
        host_tools["import_all_markdown"].assert_awaited_once()
        assert events[-1].state == FsmState.GAP_ANALYSIS_PROMPT

    @pytest.mark.asyncio
    async def test_off_topic_without_llm_stays(self, make_context):
        ctx = make_context({"fsmState": "SYNC_WAITING"})
        events = await run_turn(self.agent, "tell me a joke", ctx)
        assert "Right now, let's focus on" in events[0].content
        assert events[-1].state == FsmState.SYNC_WAITING
        assert ctx.user_message == "tell me a joke"

    @pytest.mark.asyncio
    async def test_typed_repo_name_is_selected(self, make_context, mock_installation_dao):
        mock_installation_dao.list_installations.return_value = [
            {"name": "acme", "installation_id": 42, "repos": ["acme/docs", "acme/api"]}
        ]
        ctx = make_context({"fsmState": "GITHUB_REPO_PROMPT", "availableRepos": ["acme/docs", "acme/api"]})

        events = await run_turn(self.agent, "api", ctx)

        assert events[-1].state == FsmState.REPO_SCAN_PROMPT
        assert ctx.step_data.connected_repo == "acme/api"

    @pytest.mark.asyncio
    async def test_done_while_installing_rechecks_github(self, make_context):
        ctx = make_context({"fsmState": "GITHUB_INSTALLING"})
        events = await run_turn(self.agent, "done", ctx)
        calls = [e.tool_call.name for e in events if e.type == "tool_call"]
        assert calls == ["check_github_status"]

    @pytest.mark.asyncio
    async def test_uses_injected_classifier(self, make_context):
        classifier = Mock()
        classifier.classify = AsyncMock(return_value=IntentDecision(intent=Intent.SKIP, source="llm"))
        agent = OnboardingAgent(classifier=classifier)

        events = await run_turn(agent, "I'd rather explore alone", make_context())

        classifier.classify.assert_awaited_once_with("I'd rather explore alone", FsmState.WELCOME)
        assert events[-1].state == FsmState.COMPLETED
