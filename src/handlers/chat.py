"""Onboarding chat endpoint for FastAPI."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.exceptions import OnboardingException, StepDataValidationException
from src.fsm.models import FsmState, OnboardingEvent, StepData
from src.tools.context import ToolContext
from src.utils.logger import log

router = APIRouter()


class ChatRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    message: str = ""


class ChatResponse(BaseModel):
    state: Optional[FsmState] = None
    events: List[OnboardingEvent]


async def build_context(
    user_id: Any, store: Any, collaborators: Optional[Dict[str, Any]] = None
) -> ToolContext:
    """Load the user's step data and wrap it with the host's collaborators.

    Raises:
        StepDataValidationException: If the stored step data is malformed
    """
    step_data = StepData.from_persisted(await store.get_step_data(user_id))
    return ToolContext(user_id=user_id, step_data=step_data, store=store, **(collaborators or {}))


@router.post("/onboarding/chat", response_model=ChatResponse)
async def onboarding_chat(body: ChatRequest, request: Request):
    """Run one onboarding turn and return every event it produced."""
    state = request.app.state
    try:
        context = await build_context(body.user_id, state.store, state.collaborators)
    except StepDataValidationException as e:
        log.error(f"Cannot load onboarding for {body.user_id}: {e}")
        raise HTTPException(status_code=422, detail=e.to_dict())

    events: List[OnboardingEvent] = []
    try:
        async for event in state.agent.chat(body.message, context):
            events.append(event)
    except OnboardingException as e:
        log.error(f"Onboarding turn failed for {body.user_id}: {e}")
        raise HTTPException(status_code=500, detail=e.to_dict())

    final_state = events[-1].state if events and events[-1].type == "done" else None
    return ChatResponse(state=final_state, events=events)
