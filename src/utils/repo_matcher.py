"""Repository name matching for user-typed repo references."""

import re
from typing import List, Optional

from src.utils.logger import log

_MARKDOWN_EMPHASIS = re.compile(r"\*+")


def normalize_repo_input(user_input: str) -> str:
    """Strip markdown emphasis (`*`, `**`), surrounding whitespace and case."""
    if not user_input:
        return ""
    return _MARKDOWN_EMPHASIS.sub("", user_input).strip().lower()


def repo_segment(full_name: str) -> str:
    """Return the part after the first `/` of `owner/repo` (lowercased)."""
    _, _, name = full_name.partition("/")
    return (name or full_name).lower()


def match_repo_name(user_input: str, candidates: List[str]) -> Optional[str]:
    """Resolve a user-typed repository reference against `owner/repo` names.

    Tiers, first success wins:
    1. exact case-insensitive match of the full name
    2. exact match of the repo segment, only when exactly one candidate has it
    3. substring of the repo segment, only when exactly one candidate contains it

    Args:
        user_input: Raw text typed by the user
        candidates: Available repository full names

    Returns:
        The matched candidate (original casing) or None
    """
    needle = normalize_repo_input(user_input)
    if not needle or not candidates:
        log.debug("🔍 Repo match: empty input or no candidates")
        return None

    for candidate in candidates:
        if candidate.lower() == needle:
            log.debug(f"✅ Repo match (exact): '{user_input}' → '{candidate}'")
            return candidate

    by_name = [c for c in candidates if repo_segment(c) == needle]
    if len(by_name) == 1:
        log.debug(f"✅ Repo match (name): '{user_input}' → '{by_name[0]}'")
        return by_name[0]
    if len(by_name) > 1:
        log.debug(f"❌ Repo match: '{user_input}' is ambiguous ({len(by_name)} repos)")
        return None

    by_substring = [c for c in candidates if needle in repo_segment(c)]
    if len(by_substring) == 1:
        log.debug(f"✅ Repo match (substring): '{user_input}' → '{by_substring[0]}'")
        return by_substring[0]

    log.debug(
        f"❌ Repo match: no unique match for '{user_input}' "
        f"({len(by_substring)} substring candidates)"
    )
    return None
