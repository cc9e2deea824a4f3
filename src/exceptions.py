"""Custom exceptions for structured error handling and propagation.

This module provides domain-specific exceptions with error codes so that
failures inside the onboarding engine carry enough context to be logged
and, where relevant, turned into a conversational message.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for categorizing failures."""

    # Step data errors (1xxx)
    STEP_DATA_INVALID = "STEP_1001"
    UNKNOWN_STATE = "STEP_1002"

    # Tool errors (2xxx)
    TOOL_NOT_FOUND = "TOOL_2001"
    TOOL_EXECUTION_FAILED = "TOOL_2002"
    PRECONDITION_FAILED = "TOOL_2003"

    # Integration errors (3xxx)
    GITHUB_API_ERROR = "INTEGRATION_3001"
    LLM_ERROR = "INTEGRATION_3002"

    # Engine errors (4xxx)
    TRANSITION_CYCLE = "LOGIC_4001"
    INVALID_TRANSITION = "LOGIC_4002"


class OnboardingException(Exception):
    """Base exception for all onboarding errors.

    All custom exceptions should inherit from this to enable
    structured error handling and propagation.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        """Initialize exception with structured error information.

        Args:
            message: Technical error message (for logging)
            error_code: Standard error code for categorization
            user_message: User-friendly message (for display)
            details: Additional error context
            original_exception: Original exception if wrapping
        """
        super().__init__(message)
        self.error_code = error_code
        self.user_message = user_message or "Something went wrong."
        self.details = details or {}
        self.original_exception = original_exception

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "success": False,
            "error_code": self.error_code.value,
            "message": str(self),
            "user_message": self.user_message,
            "details": self.details,
        }


class ToolNotFoundException(OnboardingException):
    """Raised when a tool name is not registered."""

    def __init__(self, tool_name: str, **kwargs):
        super().__init__(
            message=f"No tool registered under name: {tool_name}",
            error_code=ErrorCode.TOOL_NOT_FOUND,
            user_message=f"The {tool_name} step is not available right now.",
            details={"tool": tool_name},
            **kwargs,
        )


class ToolExecutionException(OnboardingException):
    """Raised when a tool handler raises instead of returning a result."""

    def __init__(self, tool_name: str, reason: str, **kwargs):
        super().__init__(
            message=f"Tool {tool_name} failed: {reason}",
            error_code=ErrorCode.TOOL_EXECUTION_FAILED,
            user_message=f"The {tool_name} step failed: {reason}",
            details={"tool": tool_name, "reason": reason},
            **kwargs,
        )


class StepDataValidationException(OnboardingException):
    """Raised when persisted step data cannot be validated."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            message=f"Invalid onboarding step data: {reason}",
            error_code=ErrorCode.STEP_DATA_INVALID,
            user_message="Your onboarding progress could not be loaded.",
            details={"reason": reason},
            **kwargs,
        )


class TransitionCycleException(OnboardingException):
    """Raised when an auto state is entered twice within one turn."""

    def __init__(self, state: str, path: list, **kwargs):
        super().__init__(
            message=f"Auto state {state} revisited within one turn: {' -> '.join(path)}",
            error_code=ErrorCode.TRANSITION_CYCLE,
            details={"state": state, "path": path},
            **kwargs,
        )


class InvalidTransitionException(OnboardingException):
    """Raised when a handler asks to enter a state that is not an auto state."""

    def __init__(self, from_state: str, to_state: str, **kwargs):
        super().__init__(
            message=f"Cannot chain from {from_state} into prompt state {to_state}",
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"from_state": from_state, "to_state": to_state},
            **kwargs,
        )


class GitHubApiException(OnboardingException):
    """Raised when a GitHub API call fails."""

    def __init__(self, operation: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            message=f"GitHub API error during {operation} (status={status_code})",
            error_code=ErrorCode.GITHUB_API_ERROR,
            user_message="GitHub could not be reached.",
            details={"operation": operation, "status_code": status_code},
            **kwargs,
        )
