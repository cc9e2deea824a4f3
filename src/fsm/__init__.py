"""Finite State Machine (FSM) module for the onboarding conversation.

This module provides the state and intent model, the transition engine that
drives one user turn, sync detection and state recovery.
"""

from src.fsm.core import TransitionEngine, engine, transition
from src.fsm.models import (
    AUTO_STATES,
    PROMPT_STATES,
    RESUMABLE_STATES,
    DocAction,
    FsmState,
    Intent,
    OnboardingEvent,
    StepData,
    TransitionResult,
)
from src.fsm.recovery import OnboardingRecoveryManager, derive_fsm_state_from_step_data
from src.fsm.store import InMemoryOnboardingStore

__all__ = [
    "AUTO_STATES",
    "PROMPT_STATES",
    "RESUMABLE_STATES",
    "DocAction",
    "FsmState",
    "Intent",
    "OnboardingEvent",
    "StepData",
    "TransitionResult",
    "TransitionEngine",
    "engine",
    "transition",
    "OnboardingRecoveryManager",
    "derive_fsm_state_from_step_data",
    "InMemoryOnboardingStore",
]
