"""Node handler package: built-in handlers plus an extensible registry.

Usage:
    from flowpilot.handlers import create_handler_registry, close_handler_registry

    registry = create_handler_registry(settings)
    try:
        ...
    finally:
        await close_handler_registry(registry)
"""

from .registry import (
    Handler,
    HandlerRegistry,
    close_handler_registry,
    create_handler_registry,
    register,
)

# Import built-in handler modules to trigger @register decoration
from . import actions, conditions, transforms, triggers  # noqa: E402, F401

__all__ = [
    "Handler",
    "HandlerRegistry",
    "close_handler_registry",
    "create_handler_registry",
    "register",
]
