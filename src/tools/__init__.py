"""Onboarding tools: execution context, registry and built-in handlers."""

from src.tools.builtin import create_default_registry, register_builtin_tools
from src.tools.context import OnboardingStore, ToolContext
from src.tools.registry import ToolRegistry

__all__ = [
    "OnboardingStore",
    "ToolContext",
    "ToolRegistry",
    "create_default_registry",
    "register_builtin_tools",
]
