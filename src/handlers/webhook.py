"""GitHub webhook handlers for FastAPI."""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from src.config import settings
from src.exceptions import StepDataValidationException
from src.fsm.models import FsmState, StepData
from src.utils.logger import log

router = APIRouter()

# Sessions that are waiting to observe a push.
SYNC_LISTENING_STATES = (FsmState.SYNC_EXPLAIN, FsmState.SYNC_WAITING)


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check GitHub's `X-Hub-Signature-256` header against the shared secret."""
    if not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256="):])


async def handle_push_event(payload: Dict[str, Any], store: Any) -> int:
    """Flag a sync on every session waiting for a push to this repository.

    Args:
        payload: GitHub push event payload
        store: OnboardingStore holding the sessions

    Returns:
        Number of sessions updated (0 for tag pushes or malformed payloads)
    """
    repository = payload.get("repository") if isinstance(payload, dict) else None
    full_name = repository.get("full_name") if isinstance(repository, dict) else None
    ref = payload.get("ref") if isinstance(payload, dict) else None
    if not full_name or not isinstance(ref, str) or not ref.startswith("refs/heads/"):
        log.debug(f"Ignoring push payload (repo={full_name}, ref={ref})")
        return 0

    now = datetime.now(timezone.utc).isoformat()
    updated = 0
    for user_id in await store.list_user_ids():
        try:
            step_data = StepData.from_persisted(await store.get_step_data(user_id))
        except StepDataValidationException as e:
            log.warning(f"Skipping session {user_id} with invalid step data: {e}")
            continue
        if step_data.fsm_state not in SYNC_LISTENING_STATES:
            continue
        if (step_data.connected_repo or "").lower() != full_name.lower():
            continue

        await store.update_step_data(user_id, {"syncTriggered": True, "lastSyncTime": now})
        updated += 1
        log.info(f"🔄 Push to {full_name} ({ref}) marked sync for user {user_id}")

    return updated


@router.post("/webhooks/github")
async def github_webhook(request: Request):
    """Handle GitHub webhook deliveries.

    Only `push` events are acted on; other events are acknowledged and
    ignored. When a webhook secret is configured the payload signature is
    enforced.
    """
    body = await request.body()

    if settings.github_webhook_secret:
        signature = request.headers.get("X-Hub-Signature-256", "")
        if not verify_signature(body, signature, settings.github_webhook_secret):
            log.warning("🚫 Invalid GitHub webhook signature")
            raise HTTPException(status_code=403, detail="Invalid signature")

    event = request.headers.get("X-GitHub-Event", "")
    if event != "push":
        log.info(f"Ignoring GitHub event: {event or 'unknown'}")
        return {"updated": 0, "ignored": True}

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    updated = await handle_push_event(payload, request.app.state.store)
    return {"updated": updated}
