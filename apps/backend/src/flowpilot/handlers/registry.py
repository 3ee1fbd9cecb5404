"""Handler registry: maps (node type, category) pairs to executable handlers."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from ..errors import UnknownHandlerError

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

# A handler takes (config, input) and returns the node output, sync or async
Handler = Callable[[dict, Any], Any]
HandlerKey = tuple[str, str]

# Built-in handler registry, populated via the @register decorator
_BUILTIN_HANDLERS: dict[HandlerKey, Handler] = {}


def _normalize_type(node_type: str) -> str:
    # "ai" nodes from the editor execute as actions
    return "action" if node_type == "ai" else node_type


def register(node_type: str, category: str) -> Callable[[Handler], Handler]:
    """Decorator that registers a built-in handler for ``node_type:category``."""

    def decorator(fn: Handler) -> Handler:
        _BUILTIN_HANDLERS[(_normalize_type(node_type), category)] = fn
        return fn

    return decorator


class HandlerRegistry:
    """Resolves and invokes node handlers for one engine.

    Each registry starts from a copy of the built-in handlers, so registering
    or overriding a category on one instance never leaks into another.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._handlers: dict[HandlerKey, Handler] = dict(_BUILTIN_HANDLERS)
        # Shared client for live connectors, closed by close_handler_registry()
        self.http_client = http_client

    def register(
        self,
        node_type: str,
        category: str,
        handler: Handler | None = None,
    ) -> Any:
        """Register ``handler``, or act as a decorator when called without one."""
        if handler is not None:
            self._handlers[(_normalize_type(node_type), category)] = handler
            return handler

        def decorator(fn: Handler) -> Handler:
            self._handlers[(_normalize_type(node_type), category)] = fn
            return fn

        return decorator

    def unregister(self, node_type: str, category: str) -> bool:
        return self._handlers.pop((_normalize_type(node_type), category), None) is not None

    def lookup(self, node_type: str, category: str) -> Handler | None:
        """Return the handler for a node type and category, or None."""
        return self._handlers.get((_normalize_type(node_type), category))

    def get(self, node_type: str, category: str) -> Handler:
        """Like lookup() but raises UnknownHandlerError when nothing matches."""
        handler = self.lookup(node_type, category)
        if handler is None:
            raise UnknownHandlerError(node_type, category)
        return handler

    def categories(self) -> dict[str, list[str]]:
        """Registered categories grouped by node type."""
        grouped: dict[str, list[str]] = {}
        for node_type, category in sorted(self._handlers):
            grouped.setdefault(node_type, []).append(category)
        return grouped

    async def invoke(self, handler: Handler, config: dict, node_input: Any) -> Any:
        """Call a handler and await its result if it is asynchronous."""
        result = handler(config, node_input)
        if inspect.isawaitable(result):
            result = await result
        return result


def create_handler_registry(settings: Settings | None = None) -> HandlerRegistry:
    """Create a registry with simulated or live connectors.

    Modes (controlled by settings.connector_mode):
      "simulator": built-in handlers return stub acknowledgments (default)
      "live":      http_request performs real HTTP calls, and slack_message
                    posts through the Slack Web API when a bot token is set;
                    other actions stay simulated
    """
    if settings is None or settings.connector_mode == "simulator":
        return HandlerRegistry()

    from .connectors import HttpRequestHandler, SlackMessageHandler

    http_client = httpx.AsyncClient(timeout=settings.http_timeout)
    registry = HandlerRegistry(http_client=http_client)
    registry.register("action", "http_request", HttpRequestHandler(http_client))

    if settings.slack_bot_token:
        registry.register(
            "action",
            "slack_message",
            SlackMessageHandler(settings.slack_bot_token, http_client),
        )
    else:
        logger.info("SLACK_BOT_TOKEN not set; slack_message stays simulated")

    return registry


async def close_handler_registry(registry: HandlerRegistry) -> None:
    """Close the HTTP client attached to a live registry, if any."""
    if registry.http_client is not None:
        await registry.http_client.aclose()
        registry.http_client = None
