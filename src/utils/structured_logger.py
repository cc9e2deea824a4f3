"""Structured logging utility for onboarding FSM operations.

Log lines carry a correlation id (one per user turn) and a JSON payload so
that every hop of a multi-hop turn can be traced back to the message that
triggered it.
"""

import json
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.utils.logger import log

# Context variable for correlation ID (task-safe)
correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


class StructuredLogger:
    """Structured logger with JSON formatting and correlation ID support."""

    def __init__(self, component: str):
        """Initialize structured logger for a component.

        Args:
            component: Name of the component (e.g., "fsm.core", "fsm.sync")
        """
        self.component = component

    def _format_structured_log(
        self, level: str, message: str, **kwargs: Any
    ) -> Dict[str, Any]:
        """Format log entry as structured JSON.

        Args:
            level: Log level (INFO, WARNING, ERROR, etc.)
            message: Log message
            **kwargs: Additional structured data

        Returns:
            Structured log entry as dictionary
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "component": self.component,
            "message": message,
            "correlation_id": correlation_id_var.get(),
        }

        if kwargs:
            log_entry["data"] = kwargs

        return log_entry

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        structured_data = self._format_structured_log(level, message, **kwargs)
        log_message = f"[ONBOARDING] {message} | {json.dumps(structured_data, default=str)}"
        log.opt(depth=2).log(level, log_message)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message with structured data."""
        self._log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message with structured data."""
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with structured data."""
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message with structured data."""
        self._log("ERROR", message, **kwargs)

    def log_transition(
        self,
        user_id: Any,
        from_state: str,
        to_state: str,
        intent: str,
        chained: bool = False,
        **kwargs: Any,
    ) -> None:
        """Log a single FSM hop with structured data.

        Args:
            user_id: User identifier
            from_state: Source state
            to_state: Target state
            intent: Intent that drove the hop
            chained: Whether the engine entered the target state in the same turn
            **kwargs: Additional context
        """
        self.info(
            f"State transition: {from_state} -> {to_state}",
            user_id=user_id,
            from_state=from_state,
            to_state=to_state,
            intent=intent,
            chained=chained,
            **kwargs,
        )


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set correlation ID for current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def get_structured_logger(component: str) -> StructuredLogger:
    """Factory function to create a structured logger for a component."""
    return StructuredLogger(component)
