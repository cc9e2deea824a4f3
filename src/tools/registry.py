"""Name-to-handler registry for onboarding tools."""
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.exceptions import ToolExecutionException, ToolNotFoundException
from src.fsm.models import ToolResult
from src.utils.logger import log

ToolHandler = Callable[[Dict[str, Any], Any], Awaitable[ToolResult]]


class ToolRegistry:
    """Registry of async tool handlers with a uniform result shape.

    `execute` never raises: an unknown name or a handler exception becomes a
    failed ToolResult whose content explains what happened.
    """

    def __init__(self):
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        if name in self._handlers:
            log.debug(f"Replacing tool handler: {name}")
        self._handlers[name] = handler

    def has(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> List[str]:
        return sorted(self._handlers)

    async def execute(
        self, name: str, args: Optional[Dict[str, Any]], context: Any
    ) -> ToolResult:
        """Run a tool by name.

        Args:
            name: Registered tool name
            args: Structured arguments for the tool
            context: ToolContext for the current turn

        Returns:
            ToolResult (success=False on unknown tool or handler error)
        """
        handler = self._handlers.get(name)
        if handler is None:
            error = ToolNotFoundException(name)
            log.warning(str(error))
            return ToolResult(success=False, content=error.user_message)

        try:
            result = await handler(args or {}, context)
        except Exception as e:
            error = ToolExecutionException(name, str(e), original_exception=e)
            log.error(f"{error} (user: {getattr(context, 'user_id', None)})")
            return ToolResult(success=False, content=error.user_message)

        if not result.success:
            log.info(f"Tool {name} returned failure: {result.content[:200]}")
        return result
