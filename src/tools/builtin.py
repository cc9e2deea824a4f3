"""Built-in onboarding tools backed by the DAOs on the tool context.

Bulk import, gap analysis and doc generation are registered by the host
application; this module only covers the GitHub/space/lifecycle tools the
flow cannot run without.
"""
import json
from typing import Any, Dict

from src.config import settings
from src.fsm.models import ToolResult, UiAction
from src.tools.registry import ToolRegistry
from src.tools.utils import (
    get_access_token_for_integration,
    get_active_github_integration,
    get_or_create_repo_space,
    split_repo,
)
from src.utils.logger import log

MARKDOWN_EXTENSIONS = (".md", ".mdx")


async def check_github_status(args: Dict[str, Any], context: Any) -> ToolResult:
    """Report whether GitHub is connected, installed without a repo, or absent.

    Read-only: persisting what the status implies is the engine's job.
    """
    integration = await get_active_github_integration(context)
    if integration:
        metadata = integration.get("metadata") or {}
        status = {
            "status": "connected",
            "integrationId": integration.get("id"),
            "repo": metadata.get("repo") or integration.get("name"),
            "branch": metadata.get("branch") or settings.github_default_branch,
            "installationId": metadata.get("installation_id"),
        }
        return ToolResult(success=True, content=json.dumps(status))

    installations = []
    if context.github_installation_dao is not None:
        installations = await context.github_installation_dao.list_installations() or []

    if installations:
        status = {
            "status": "installed",
            "installations": [
                {
                    "name": inst.get("name"),
                    "installationId": inst.get("installation_id"),
                    "repos": list(inst.get("repos") or []),
                }
                for inst in installations
            ],
        }
        return ToolResult(success=True, content=json.dumps(status))

    return ToolResult(success=True, content=json.dumps({"status": "not_installed"}))


async def install_github_app(args: Dict[str, Any], context: Any) -> ToolResult:
    return ToolResult(
        success=True,
        content="Opening the GitHub App installation page.",
        ui_action=UiAction(type="open_github_install", message="Install the GitHub App"),
    )


async def connect_github_repo(args: Dict[str, Any], context: Any) -> ToolResult:
    return ToolResult(
        success=True,
        content="Opening the repository selection dialog.",
        ui_action=UiAction(type="open_github_repo_select", message="Select a repository"),
    )


async def get_or_create_space(args: Dict[str, Any], context: Any) -> ToolResult:
    if context.space_dao is None:
        return ToolResult(success=False, content="Spaces are not available right now.")

    space = await get_or_create_repo_space(context)
    return ToolResult(
        success=True,
        content=json.dumps(
            {"created": space["created"], "name": space["name"], "spaceId": space["space_id"]}
        ),
    )


async def scan_repository(args: Dict[str, Any], context: Any) -> ToolResult:
    """List .md/.mdx files of the connected repository and store them."""
    repository = args.get("repository") or context.step_data.connected_repo
    parts = split_repo(repository)
    if parts is None:
        return ToolResult(success=False, content="No valid repository given (expected owner/repo).")

    integration = await get_active_github_integration(context)
    if integration is None:
        return ToolResult(success=False, content="No active GitHub integration found.")

    metadata = integration.get("metadata") or {}
    token = await get_access_token_for_integration(context, metadata)
    if not token:
        return ToolResult(success=False, content=f"Could not get an access token for {repository}.")

    owner, name = parts
    branch = metadata.get("branch") or settings.github_default_branch
    tree = await context.github.fetch_repo_tree(token, owner, name, branch)

    files = sorted(
        item["path"]
        for item in tree
        if item.get("type") == "blob"
        and str(item.get("path", "")).lower().endswith(MARKDOWN_EXTENSIONS)
    )
    await context.update_step_data({"discovered_files": files})
    log.info(f"Scanned {repository}@{branch}: {len(files)} markdown files (user={context.user_id})")

    if not files:
        return ToolResult(success=True, content=f"No markdown files found in {repository}.")
    return ToolResult(
        success=True,
        content=f"Found {len(files)} markdown files in {repository}:\n" + "\n".join(files),
    )


async def complete_onboarding(args: Dict[str, Any], context: Any) -> ToolResult:
    step_data = context.step_data
    article_count = len(step_data.imported_articles or []) + len(step_data.generated_articles or [])
    if article_count == 0:
        return ToolResult(
            success=False,
            content=(
                "Cannot complete onboarding yet: no articles have been imported or generated. "
                "Import or generate documentation first, or skip onboarding."
            ),
        )

    await context.complete_onboarding()
    return ToolResult(
        success=True, content=f"Onboarding completed with {article_count} articles."
    )


async def skip_onboarding(args: Dict[str, Any], context: Any) -> ToolResult:
    await context.skip_onboarding()
    return ToolResult(
        success=True,
        content=(
            "No problem, onboarding skipped. You can connect GitHub and import docs "
            "anytime from the settings."
        ),
    )


BUILTIN_TOOLS = {
    "check_github_status": check_github_status,
    "install_github_app": install_github_app,
    "connect_github_repo": connect_github_repo,
    "get_or_create_space": get_or_create_space,
    "scan_repository": scan_repository,
    "complete_onboarding": complete_onboarding,
    "skip_onboarding": skip_onboarding,
}


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    for name, handler in BUILTIN_TOOLS.items():
        registry.register(name, handler)
    return registry


def create_default_registry() -> ToolRegistry:
    """Registry with every built-in tool; hosts add import/analysis tools on top."""
    return register_builtin_tools(ToolRegistry())
