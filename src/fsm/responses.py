"""Deterministic response templates for each onboarding state.

Every user-facing sentence the engine emits is built here so the flow reads
the same on every run and can be asserted on in tests.
"""

from typing import List, Optional

from src.config import settings
from src.fsm.models import FsmState, GapResult, GapSeverity, StepData


def _product() -> str:
    return settings.product_name


def _bullet_list(items: List[str], limit: int, bold: bool = True, noun: str = "") -> str:
    shown = items[:limit]
    lines = [f"- **{item}**" if bold else f"- {item}" for item in shown]
    if len(items) > limit:
        suffix = f" {noun}" if noun else ""
        lines.append(f"- ... and {len(items) - limit} more{suffix}")
    return "\n".join(lines)


def welcome_message() -> str:
    return (
        f"Welcome to {_product()}! I'm here to help you get set up with 3 quick steps:\n\n"
        f"1. **Connect GitHub** - Link your repository so {_product()} can access your code and docs\n"
        "2. **Import & Generate Docs** - Bring in existing markdown files and/or generate new documentation from your code\n"
        "3. **Test Auto-Sync** - Verify that changes you push to GitHub automatically update your docs\n\n"
        "Ready to get started?"
    )


def github_already_connected(repo: str, branch: str) -> str:
    return (
        f"Great news - GitHub is already connected! Your repository **{repo}** (branch: {branch}) is linked.\n\n"
        "Let's move on to scanning your repository for documentation files."
    )


def github_check_failed() -> str:
    return "There was an issue checking your GitHub status. Would you like to try connecting?"


def github_install_prompt() -> str:
    return (
        f"To get started, we need to install the {_product()} GitHub App on your account. "
        f"This gives {_product()} read access to your repositories so we can import documentation.\n\n"
        "Would you like to install the GitHub App now?"
    )


def github_repo_prompt(available_repos: Optional[List[str]] = None) -> str:
    """Prompt for repository selection.

    One repo asks for a yes, several repos list them and ask for a name,
    none falls back to opening the selection dialog.
    """
    if available_repos and len(available_repos) == 1:
        return (
            f"The GitHub App is installed! I found one repository: **{available_repos[0]}**\n\n"
            "Would you like to connect it? Say **yes** to connect."
        )

    if available_repos:
        return (
            "The GitHub App is installed! Here are the repositories I have access to:\n\n"
            + _bullet_list(available_repos, settings.max_listed_repos)
            + "\n\nType the name of the repository you'd like to connect "
            "(e.g., **owner/repo** or just the repo name)."
        )

    return (
        "The GitHub App is installed! Now let's connect a repository.\n\n"
        "Would you like to select a repository to connect?"
    )


def repo_not_found(user_input: str, available_repos: List[str]) -> str:
    return (
        f'I couldn\'t find a repository matching "**{user_input}**". Here are the available repositories:\n\n'
        + _bullet_list(available_repos, settings.max_listed_repos)
        + "\n\nPlease type the name of the repository you'd like to connect."
    )


def repo_connect_failed(repo: str) -> str:
    return f"I couldn't connect **{repo}**: no matching GitHub installation was found."


def github_waiting(action: str) -> str:
    if action == "install":
        return "Opening the GitHub App installation page... Once you've completed the installation, let me know!"
    return "Opening repository selection... Once you've selected a repository, let me know!"


def repo_scan_prompt(repo: str) -> str:
    return (
        f"Would you like me to scan **{repo}** for markdown documentation files? "
        "I'll look for .md and .mdx files throughout the repository."
    )


def no_repo_connected() -> str:
    return "No repository is connected yet. Let me check your GitHub status."


def scan_results(repo: str, files: List[str]) -> str:
    if not files:
        return (
            f"I scanned **{repo}** but didn't find any markdown files. "
            "No worries - you can still generate documentation from your code!\n\n"
            "What would you like to do?\n"
            "- **Generate** new docs from your code\n"
            "- **Skip** this step"
        )

    return (
        f"Found **{len(files)}** markdown files in **{repo}**:\n"
        + _bullet_list(files, settings.max_listed_files, bold=False, noun="files")
        + "\n\nWhat would you like to do?\n"
        "- **Import** existing markdown files\n"
        "- **Generate** new docs from your code\n"
        "- **Both** - import existing files and generate additional docs\n"
        "- **Skip** this step"
    )


def doc_action_prompt_no_files() -> str:
    return (
        "No existing documentation files were found in your repository.\n\n"
        "Would you like me to **generate** documentation from your code? "
        "I'll analyze your codebase and create documentation articles for undocumented areas."
    )


def space_created(space_name: str, created: bool) -> str:
    if created:
        return f'Created a documentation space called **"{space_name}"** for your project.'
    return f'Using existing documentation space **"{space_name}"**.'


def importing_started(file_count: int) -> str:
    return f"Importing **{file_count}** markdown files... this can take a moment."


def import_error(details: str) -> str:
    return (
        f"Import encountered an issue: {details}\n\n"
        "Would you like me to analyze your code for documentation gaps instead?"
    )


def import_complete(imported: int, skipped: int, failed: int) -> str:
    msg = f"Import complete! **{imported}** articles imported successfully."
    if skipped > 0:
        msg += f" {skipped} files were skipped (already imported)."
    if failed > 0:
        msg += f" {failed} files failed to import."
    msg += "\n\nWould you like me to analyze your code for documentation gaps?"
    return msg


def gap_analysis_prompt() -> str:
    return (
        "I can analyze your codebase to find areas that could benefit from documentation. "
        "This will compare your code with the imported docs and identify gaps.\n\n"
        "Would you like to run a gap analysis?"
    )


def gap_analysis_results(gaps: List[GapResult]) -> str:
    if not gaps:
        return "Your documentation looks comprehensive - no major gaps detected!"

    msg = f"Found **{len(gaps)}** documentation gaps:\n\n"
    for severity, label in (
        (GapSeverity.HIGH, "High priority"),
        (GapSeverity.MEDIUM, "Medium priority"),
        (GapSeverity.LOW, "Low priority"),
    ):
        group = [g for g in gaps if g.severity == severity]
        if group:
            msg += f"**{label}:**\n"
            msg += "\n".join(f"- {g.title}: {g.description}" for g in group)
            msg += "\n\n"
    return msg


def generate_prompt(has_gaps: bool) -> str:
    if has_gaps:
        return (
            "Based on the gap analysis, I can generate documentation to fill these gaps. "
            "I'll analyze your code and create articles covering the missing areas.\n\n"
            "Would you like me to generate documentation?"
        )
    return (
        "I can analyze your codebase and generate documentation articles. "
        "I'll look at your code structure, APIs, and logic to create helpful docs.\n\n"
        "Would you like me to generate documentation from your code?"
    )


def generate_complete(article_count: int) -> str:
    return (
        f"Generated **{article_count}** documentation articles from your code!\n\n"
        "You can review and edit these articles in the Articles section."
    )


def sync_explanation() -> str:
    return (
        "Almost done! Let's verify that auto-sync is working.\n\n"
        f"{_product()} automatically updates your documentation when you push changes to GitHub. "
        "To test this, try making a small edit to any markdown file in your repository and push it.\n\n"
        "Would you like to test auto-sync now, or skip this step?"
    )


def sync_waiting() -> str:
    return (
        "I'm watching for changes... Push an edit to a markdown file in your connected repository, "
        'and I\'ll detect the sync automatically. Say "check" when you\'ve pushed a change, or "skip" to finish up.'
    )


def sync_not_detected() -> str:
    return (
        "No sync detected yet. This could mean:\n"
        "- The changes haven't been pushed yet\n"
        "- The webhook hasn't fired yet (usually takes a few seconds)\n\n"
        'Try pushing a change to a markdown file and say "check" again, or "skip" to finish.'
    )


def sync_detected() -> str:
    return (
        "Sync detected! Auto-sync is working correctly. "
        "Changes you push to GitHub will automatically update your documentation.\n\n"
        f"Feel free to ask me any questions about {_product()}, or say **done** when you're ready to finish."
    )


def completion_summary(step_data: StepData) -> str:
    imported = len(step_data.imported_articles or [])
    generated = len(step_data.generated_articles or [])

    if step_data.connected_integration:
        github = f"Connected ({step_data.connected_repo})"
    else:
        github = "Not connected"

    msg = "Onboarding complete! Here's what we accomplished:\n\n"
    msg += f"- **GitHub**: {github}\n"
    if imported > 0:
        msg += f"- **Imported**: {imported} documentation articles\n"
    if generated > 0:
        msg += f"- **Generated**: {generated} documentation articles\n"
    if step_data.sync_triggered:
        msg += "- **Auto-Sync**: Verified and working\n"
    msg += (
        "\nYou're all set! Explore your documentation in the **Articles** section, "
        "or create a **Doc Site** to publish your docs."
    )
    return msg


def already_completed() -> str:
    return f"Onboarding is already complete! You can explore {_product()} on your own."


_STATUS_STEP_DESCRIPTIONS = {
    FsmState.WELCOME: "getting started",
    FsmState.GITHUB_CHECK: "checking GitHub connection",
    FsmState.GITHUB_INSTALL_PROMPT: "installing the GitHub App",
    FsmState.GITHUB_INSTALLING: "waiting for GitHub App installation",
    FsmState.GITHUB_REPO_PROMPT: "selecting a repository",
    FsmState.GITHUB_REPO_SELECTING: "waiting for repository selection",
    FsmState.REPO_SCAN_PROMPT: "ready to scan repository",
    FsmState.DOC_ACTION_PROMPT: "choosing import/generate action",
    FsmState.IMPORTING: "importing documentation",
    FsmState.GAP_ANALYSIS_PROMPT: "ready for gap analysis",
    FsmState.GENERATE_PROMPT: "ready for doc generation",
    FsmState.SYNC_EXPLAIN: "ready to test auto-sync",
    FsmState.SYNC_WAITING: "waiting for sync event",
    FsmState.SYNC_CONFIRMED: "sync verified - ask questions or say done",
    FsmState.COMPLETED: "onboarding complete",
}


def status_message(current_state: FsmState, step_data: StepData) -> str:
    """Summarize what has been set up so far, plus a hint for the current step."""
    parts = ["Here's your current onboarding status:\n"]

    if step_data.connected_integration and step_data.connected_repo:
        parts.append(f"- **GitHub**: Connected to **{step_data.connected_repo}**")
    elif step_data.connected_installation_id:
        parts.append("- **GitHub**: App installed, no repository connected yet")
    else:
        parts.append("- **GitHub**: Not connected")

    if step_data.space_name:
        parts.append(f'- **Space**: "{step_data.space_name}"')

    discovered = step_data.discovered_files or []
    if discovered:
        parts.append(f"- **Scanned files**: {len(discovered)} markdown files found")

    if step_data.doc_action:
        parts.append(f"- **Chosen action**: {step_data.doc_action.value}")

    imported = step_data.imported_articles or []
    if imported:
        parts.append(f"- **Imported**: {len(imported)} articles")

    generated = step_data.generated_articles or []
    if generated:
        parts.append(f"- **Generated**: {len(generated)} articles")

    gaps = step_data.gap_analysis_results or []
    if gaps:
        parts.append(f"- **Gap analysis**: {len(gaps)} gaps found")

    if step_data.sync_triggered:
        parts.append("- **Auto-sync**: Verified and working")

    description = _STATUS_STEP_DESCRIPTIONS.get(current_state)
    if description:
        parts.append(f"\n**Current step**: {description}")

    return "\n".join(parts)


def change_github_message() -> str:
    return "No problem! Let me check your GitHub connection again so you can make changes."


def reimport_message() -> str:
    return "Sure! Let me re-scan your repository and import the documentation again."


_OFF_TOPIC_STEP_DESCRIPTIONS = {
    FsmState.WELCOME: "getting started with setup",
    FsmState.GITHUB_CHECK: "connecting GitHub",
    FsmState.GITHUB_INSTALL_PROMPT: "installing the GitHub App",
    FsmState.GITHUB_INSTALLING: "completing the GitHub App installation",
    FsmState.GITHUB_REPO_PROMPT: "selecting a repository",
    FsmState.GITHUB_REPO_SELECTING: "completing repository selection",
    FsmState.REPO_SCAN_PROMPT: "scanning your repository",
    FsmState.REPO_SCANNING: "scanning for documentation files",
    FsmState.DOC_ACTION_PROMPT: "choosing what to do with your docs",
    FsmState.SPACE_CREATING: "setting up your documentation space",
    FsmState.IMPORTING: "importing your documentation",
    FsmState.GAP_ANALYSIS_PROMPT: "analyzing documentation gaps",
    FsmState.GAP_ANALYZING: "running gap analysis",
    FsmState.GENERATE_PROMPT: "generating documentation",
    FsmState.GENERATING: "generating documentation from code",
    FsmState.SYNC_EXPLAIN: "testing auto-sync",
    FsmState.SYNC_WAITING: "waiting for a sync event",
    FsmState.SYNC_CHECKING: "checking sync status",
    FsmState.SYNC_CONFIRMED: "wrapping up",
    FsmState.COMPLETING: "completing setup",
}


def off_topic_redirect(current_state: FsmState) -> str:
    description = _OFF_TOPIC_STEP_DESCRIPTIONS.get(current_state, "completing setup")
    return (
        "That's a great question! I'd be happy to help with that after we finish setup. "
        f"Right now, let's focus on {description}."
    )


_SWITCH_HINT = '\n\nYou can also say "change repo" to switch repositories, or "import again" to re-import.'


def help_message(current_state: FsmState) -> str:
    """Static help text for the current step."""
    product = _product()
    messages = {
        FsmState.WELCOME: (
            f"I'm here to help you set up {product} in 3 steps: connect GitHub, import/generate docs, and test auto-sync. "
            'Say "yes" to get started, or "skip" if you want to explore on your own.'
        ),
        FsmState.GITHUB_INSTALL_PROMPT: (
            f"The GitHub App lets {product} read your repositories to import documentation. "
            'It\'s safe and you can revoke access anytime. Say "yes" to install, or "skip" to move on.'
        ),
        FsmState.GITHUB_REPO_PROMPT: (
            "Select the repository you want to use for documentation. "
            'Type its name, or say "yes" to open the selection dialog.'
        ),
        FsmState.REPO_SCAN_PROMPT: (
            "Scanning will look through your repository for .md and .mdx files "
            "that could be imported as documentation articles."
        ),
        FsmState.DOC_ACTION_PROMPT: (
            "You have three options:\n"
            f"- **Import**: Bring your existing markdown files into {product}\n"
            "- **Generate**: Create new docs from your code\n"
            "- **Both**: Do both import and generation\n\n"
            'Just say "import", "generate", or "both".'
        ),
        FsmState.GAP_ANALYSIS_PROMPT: (
            "Gap analysis compares your code with existing documentation to find areas that need documentation. "
            'It helps prioritize what to document. Say "yes" to run it, or "skip".' + _SWITCH_HINT
        ),
        FsmState.GENERATE_PROMPT: (
            "Document generation analyzes your code and creates documentation articles. "
            'Say "yes" to start, or "skip".' + _SWITCH_HINT
        ),
        FsmState.SYNC_EXPLAIN: (
            f"Auto-sync means when you push changes to a markdown file in GitHub, {product} automatically "
            'updates the corresponding article. Push a change and say "check" to verify it works.' + _SWITCH_HINT
        ),
        FsmState.SYNC_WAITING: (
            "Push a change to any markdown file in your connected repository. "
            'When done, say "check" and I\'ll verify the sync worked.' + _SWITCH_HINT
        ),
        FsmState.SYNC_CONFIRMED: (
            f"Auto-sync is verified and working! You can ask me anything about {product}, for example:\n"
            "- How to create a Doc Site\n"
            "- How to organize articles into spaces\n"
            "- How auto-sync keeps docs up to date\n\n"
            'When you\'re ready to finish, just say "done" or "bye".'
        ),
    }
    return messages.get(
        current_state,
        "I'm here to help you complete the onboarding setup. What would you like to know?",
    )
