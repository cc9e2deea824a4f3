"""Shared helpers for onboarding tools and sync detection."""
import re
from typing import Any, Dict, Optional, Tuple

from src.config import settings
from src.utils.logger import log


def split_repo(full_name: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split `owner/repo` into its parts, or None when malformed."""
    if not full_name:
        return None
    owner, _, name = full_name.partition("/")
    if not owner or not name:
        return None
    return owner, name


def repo_slug(full_name: str) -> str:
    """Space slug derived from the repo name segment."""
    name = full_name.split("/")[-1].lower()
    return re.sub(r"[^a-z0-9]+", "-", name).strip("-") or "docs"


async def get_active_github_integration(context: Any) -> Optional[Dict[str, Any]]:
    """Return the first active GitHub integration visible to the user."""
    if context.integration_dao is None:
        return None
    integrations = await context.integration_dao.list_integrations()
    for integration in integrations or []:
        if integration.get("type") == "github" and integration.get("status") == "active":
            return integration
    return None


async def get_access_token_for_integration(
    context: Any, metadata: Optional[Dict[str, Any]]
) -> Optional[str]:
    """Resolve an installation access token for an integration's metadata."""
    installation_id = (metadata or {}).get("installation_id")
    if not installation_id:
        return None
    if context.token_provider is None:
        log.debug("No GitHub token provider configured")
        return None
    return await context.token_provider(installation_id)


async def connect_repo_directly(repo_full_name: str, context: Any) -> Optional[Dict[str, Any]]:
    """Create an active GitHub integration for a repo typed in chat.

    Finds the installation that can see the repo (case-insensitive) and
    creates the integration record for it.

    Returns:
        {"integration_id", "installation_id"} or None when no installation
        has access to the repo
    """
    if context.github_installation_dao is None or context.integration_dao is None:
        return None

    wanted = repo_full_name.lower()
    installations = await context.github_installation_dao.list_installations()
    for installation in installations or []:
        repos = [r.lower() for r in installation.get("repos") or []]
        if wanted not in repos:
            continue

        installation_id = installation.get("installation_id")
        integration = await context.integration_dao.create_integration(
            {
                "type": "github",
                "name": repo_full_name,
                "status": "active",
                "metadata": {
                    "repo": repo_full_name,
                    "branch": settings.github_default_branch,
                    "installation_id": installation_id,
                },
            }
        )
        log.info(
            f"Connected {repo_full_name} via installation {installation_id} "
            f"(integration={integration['id']}, user={context.user_id})"
        )
        return {"integration_id": integration["id"], "installation_id": installation_id}

    log.info(f"No GitHub installation has access to {repo_full_name}")
    return None


async def get_or_create_repo_space(context: Any) -> Dict[str, Any]:
    """Find the documentation space for the connected repo, creating it if needed.

    Falls back to the user's default space when no repo is connected. Stores
    `spaceId` and `spaceName` on the step data.

    Returns:
        {"space_id", "name", "created"}
    """
    repo = context.step_data.connected_repo
    created = False

    if repo:
        slug = repo_slug(repo)
        space = await context.space_dao.get_space_by_slug(slug)
        if space is None:
            space = await context.space_dao.create_space(
                {"name": repo.split("/")[-1], "slug": slug, "owner_id": context.user_id}
            )
            created = True
    else:
        space = await context.space_dao.get_default_space()
        if space is None:
            space = await context.space_dao.create_default_space_if_needed(context.user_id)
            created = True

    await context.update_step_data({"space_id": space["id"], "space_name": space["name"]})
    return {"space_id": space["id"], "name": space["name"], "created": created}
