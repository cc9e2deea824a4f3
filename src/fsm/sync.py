"""Sync detection: webhook flag plus commit-SHA polling.

Both signals converge on `syncTriggered` in step data. Any failure while
polling GitHub counts as "no evidence yet" and is never surfaced as an error.
"""
from datetime import datetime, timezone
from typing import Any

from src.config import settings
from src.tools.utils import (
    get_access_token_for_integration,
    get_active_github_integration,
    split_repo,
)
from src.utils.structured_logger import get_structured_logger

logger = get_structured_logger("fsm.sync")


async def snapshot_commit_sha(context: Any) -> None:
    """Remember the connected branch's HEAD SHA as `lastKnownCommitSha`."""
    try:
        integration = await get_active_github_integration(context)
        if not integration:
            return
        metadata = integration.get("metadata") or {}
        repo = metadata.get("repo")
        token = await get_access_token_for_integration(context, metadata)
        parts = split_repo(repo)
        if not token or parts is None:
            return

        branch = metadata.get("branch") or settings.github_default_branch
        sha = await context.github.fetch_latest_commit_sha(token, parts[0], parts[1], branch)
        if sha:
            await context.update_step_data({"last_known_commit_sha": sha})
            logger.info(
                "Snapshotted commit SHA for sync detection",
                user_id=context.user_id,
                repo=repo,
                sha=sha[:8],
            )
    except Exception as e:
        logger.warning(
            "Failed to snapshot commit SHA", user_id=context.user_id, error=str(e)
        )


async def check_sync_via_api(context: Any) -> bool:
    """Compare the branch HEAD with the snapshot; True when it moved."""
    step_data = context.step_data
    last_sha = step_data.last_known_commit_sha
    repo = step_data.connected_repo
    if not last_sha or not repo:
        logger.debug("No commit SHA or repo for API-based sync check", user_id=context.user_id)
        return False

    try:
        integration = await get_active_github_integration(context)
        if not integration:
            return False
        metadata = integration.get("metadata") or {}
        token = await get_access_token_for_integration(context, metadata)
        parts = split_repo(repo)
        if not token or parts is None:
            return False

        branch = metadata.get("branch") or settings.github_default_branch
        current_sha = await context.github.fetch_latest_commit_sha(
            token, parts[0], parts[1], branch
        )
    except Exception as e:
        logger.warning("Failed to check sync via GitHub API", user_id=context.user_id, error=str(e))
        return False

    if not current_sha:
        return False
    if current_sha != last_sha:
        logger.info(
            "Sync detected via API",
            user_id=context.user_id,
            repo=repo,
            previous_sha=last_sha[:8],
            current_sha=current_sha[:8],
        )
        return True

    logger.debug("No new commits detected via API", user_id=context.user_id, repo=repo)
    return False


async def detect_sync(context: Any) -> bool:
    """Return True once either signal shows a push since the snapshot.

    The webhook flag short-circuits polling. A SHA change is persisted as
    `syncTriggered` so both mechanisms agree on one fact.
    """
    if context.step_data.sync_triggered:
        return True

    if await check_sync_via_api(context):
        await context.update_step_data(
            {
                "sync_triggered": True,
                "last_sync_time": datetime.now(timezone.utc).isoformat(),
            }
        )
        return True
    return False
