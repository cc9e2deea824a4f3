"""Onboarding agent: drives one chat turn through the FSM."""
from typing import Any, AsyncIterator, Optional

from src.fsm.core import TransitionEngine, engine as default_engine
from src.fsm.models import RESUMABLE_STATES, Intent, OnboardingEvent, done_event
from src.fsm.recovery import derive_fsm_state_from_step_data
from src.services.intent import IntentClassifier
from src.utils.structured_logger import get_structured_logger, set_correlation_id

logger = get_structured_logger("services.onboarding_agent")


class OnboardingAgent:
    """Classifies the message, runs the engine and streams its events.

    Resumable auto states (the bulk import) are re-entered right after the
    events that announce them have been yielded, so the UI can render
    progress before the slow tool runs.
    """

    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        engine: Optional[TransitionEngine] = None,
    ):
        self.classifier = classifier or IntentClassifier()
        self.engine = engine or default_engine

    async def chat(self, message: str, context: Any) -> AsyncIterator[OnboardingEvent]:
        """Process one user message.

        Args:
            message: Raw user text
            context: ToolContext for this user

        Yields:
            OnboardingEvent items, ending with a `done` event carrying the
            persisted state
        """
        correlation_id = set_correlation_id()
        context.user_message = message

        state = derive_fsm_state_from_step_data(context.step_data)
        decision = await self.classifier.classify(message, state)
        logger.info(
            "Onboarding turn started",
            user_id=context.user_id,
            state=state.value,
            intent=decision.intent.value,
            intent_source=decision.source,
            correlation_id=correlation_id,
        )

        result = await self.engine.transition(state, decision.intent, context)
        for event in result.events:
            yield event
        state = result.new_state

        while state in RESUMABLE_STATES:
            result = await self.engine.transition(state, Intent.CONFIRM, context)
            for event in result.events:
                yield event
            state = result.new_state

        await context.update_step_data({"fsm_state": state})
        logger.info("Onboarding turn finished", user_id=context.user_id, state=state.value)
        yield done_event(state)
