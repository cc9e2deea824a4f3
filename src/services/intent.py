"""Intent classification for onboarding messages.

Hybrid approach: ordered regex rules resolve the common phrasings for free;
anything they cannot place is sent to a small Claude model constrained to
the closed intent list.
"""
import re
from typing import Any, List, Literal, Optional, Pattern, Tuple

from langchain_anthropic import ChatAnthropic
from pydantic import BaseModel

from src.config import settings
from src.exceptions import ErrorCode
from src.fsm.models import FsmState, Intent
from src.utils.logger import log

# First match wins: compound and more specific phrasings come before the
# single-word rules they contain ("import and generate" before "import").
PATTERN_RULES: List[Tuple[Intent, Pattern[str]]] = [
    (
        Intent.BOTH,
        re.compile(
            r"\b(both|all of (the )?above|import and generate|generate and import"
            r"|import (them |it )?and (also )?generate)\b"
        ),
    ),
    (
        Intent.CHANGE_GITHUB,
        re.compile(
            r"\b(change|switch)\b.*\b(repo|repos|repository|github)\b"
            r"|\b(different|another|other) (repo|repository)\b"
            r"|\breconnect\b"
        ),
    ),
    (
        Intent.REIMPORT,
        re.compile(r"\b(re-?import|import (it |them )?again|re-?scan|scan (it )?again)\b"),
    ),
    (
        Intent.GITHUB_DONE,
        re.compile(
            r"\b(done installing|finished installing|installed it|it'?s installed"
            r"|i('ve| have)? installed|app is installed|installation (is )?(done|complete)"
            r"|(i('ve| have)? )?connected it|i('ve| have)? selected|selected it|done selecting)\b"
        ),
    ),
    (Intent.IMPORT, re.compile(r"\bimport\b")),
    (Intent.GENERATE, re.compile(r"\b(generate|generation|create docs|write docs)\b")),
    (
        Intent.CHECK,
        re.compile(
            r"\b(check|verify|i('ve| have)? pushed|pushed it|did it (work|sync)|is it synced|synced)\b"
        ),
    ),
    (
        Intent.STATUS,
        re.compile(r"\b(status|progress|where am i|what have we done|summary)\b"),
    ),
    (
        Intent.HELP,
        re.compile(
            r"^\?$|\bhelp\b|\bhow does (this|it) work\b|\bwhat does (this|that) mean\b"
            r"|\bexplain\b|\bi'?m (confused|lost)\b"
        ),
    ),
    # Bare "done" is deliberately absent: it collides with github_done.
    (
        Intent.GOODBYE,
        re.compile(
            r"\b(bye|goodbye|good bye|see you|farewell|finish|i'?m done|i am done"
            r"|all done|we'?re done|that'?s all|quit|exit)\b"
        ),
    ),
    (
        Intent.SKIP,
        re.compile(r"\b(skip|not now|later|no thanks|pass)\b|^(no|nope|nah)\b"),
    ),
    (
        Intent.CONFIRM,
        re.compile(
            r"^(y|yes|yeah|yep|yup|sure|ok|okay|k|go|go ahead|let'?s go|let'?s do it|do it"
            r"|start|proceed|continue|sounds good|please|absolutely|of course|ready|alright"
            r"|i'?m ready|connect|install|scan|test)\b"
        ),
    ),
]


def classify_by_pattern(message: Optional[str]) -> Optional[Intent]:
    """Classify a message with the ordered pattern rules.

    Args:
        message: Raw user text

    Returns:
        The matched intent, OFF_TOPIC for empty input, or None when no rule
        matches and an external classifier has to decide
    """
    text = (message or "").strip().lower()
    if not text:
        return Intent.OFF_TOPIC

    for intent, pattern in PATTERN_RULES:
        if pattern.search(text):
            return intent
    return None


# Words that only make sense as "done" in a waiting state.
_DONE_WORDS = re.compile(r"^(done|finished|complete|completed)[.!]*$")


def resolve_done_for_state(message: str, state: FsmState) -> Optional[Intent]:
    """Map a bare "done" using the state the user is in."""
    if not _DONE_WORDS.match((message or "").strip().lower()):
        return None
    if state in (FsmState.GITHUB_INSTALLING, FsmState.GITHUB_REPO_SELECTING):
        return Intent.GITHUB_DONE
    if state == FsmState.SYNC_CONFIRMED:
        return Intent.GOODBYE
    return None


class IntentDecision(BaseModel):
    intent: Intent
    source: Literal["pattern", "llm", "default"]


_INTENT_DESCRIPTIONS = {
    Intent.CONFIRM: "agrees / says yes / wants to proceed",
    Intent.SKIP: "wants to skip the current step",
    Intent.CHECK: "asks to check whether the sync happened",
    Intent.GITHUB_DONE: "finished installing the GitHub app or selecting a repository",
    Intent.IMPORT: "wants to import existing markdown files",
    Intent.GENERATE: "wants to generate docs from code",
    Intent.BOTH: "wants to import and generate",
    Intent.CHANGE_GITHUB: "wants to connect a different repository",
    Intent.REIMPORT: "wants to import the documentation again",
    Intent.STATUS: "asks what has been set up so far",
    Intent.HELP: "asks for help with the current step",
    Intent.GOODBYE: "wants to end the onboarding",
    Intent.OFF_TOPIC: "anything unrelated to the current step",
}


class IntentClassifier:
    """Pattern-first intent classifier with a Claude fallback."""

    def __init__(self, llm: Optional[Any] = None):
        """Initialize classifier.

        Args:
            llm: Chat model exposing `ainvoke`. Built from settings when
                omitted and the fallback is configured.
        """
        self.llm = llm
        if self.llm is None and settings.llm_fallback_available:
            self.llm = ChatAnthropic(
                model=settings.intent_llm_model,
                api_key=settings.anthropic_api_key,
                temperature=settings.intent_llm_temperature,
                max_tokens=settings.intent_llm_max_tokens,
            )
            log.info(f"Intent classifier fallback initialized with {settings.intent_llm_model}")

    def _build_prompt(self, message: str, state: FsmState) -> str:
        options = "\n".join(
            f"- {intent.value} ({description})"
            for intent, description in _INTENT_DESCRIPTIONS.items()
        )
        return f"""You classify messages sent during a product onboarding chat.
The user is currently at onboarding step: {state.value}

Pick exactly ONE intent:
{options}

Message: {message}

Return ONLY the intent name, nothing else."""

    async def _classify_with_llm(self, message: str, state: FsmState) -> Intent:
        try:
            response = await self.llm.ainvoke(
                [{"role": "user", "content": self._build_prompt(message, state)}]
            )
            label = str(response.content).strip().lower().strip(".`'\" ")
        except Exception as e:
            log.error(f"[{ErrorCode.LLM_ERROR.value}] Error classifying intent with LLM: {e}")
            return Intent.OFF_TOPIC

        try:
            return Intent(label)
        except ValueError:
            log.warning(f"Unknown intent '{label}' returned, defaulting to 'off_topic'")
            return Intent.OFF_TOPIC

    async def classify(self, message: str, state: FsmState) -> IntentDecision:
        """Classify a user message for the given state.

        Args:
            message: Raw user text
            state: Current FSM state (context for the fallback)

        Returns:
            IntentDecision with the chosen intent and where it came from
        """
        intent = classify_by_pattern(message)
        if intent is not None:
            log.debug(f"Pattern intent: {intent.value} for '{message[:50]}'")
            return IntentDecision(intent=intent, source="pattern")

        if self.llm is not None:
            intent = await self._classify_with_llm(message, state)
            log.info(f"🤖 LLM intent: {intent.value} for '{message[:50]}' (state: {state.value})")
            return IntentDecision(intent=intent, source="llm")

        intent = resolve_done_for_state(message, state) or Intent.OFF_TOPIC
        log.warning(
            f"No LLM fallback configured, '{message[:50]}' classified as {intent.value}"
        )
        return IntentDecision(intent=intent, source="default")
