"""Hook system core module.

Hooks let calling code observe and mutate every Resource operation. Each
Schema owns its own HookRegistry; there is no global hook state.

Example usage:
    from stashbase import Schema

    schema = Schema({"fields": {"title": "string"}})

    @schema.before("create")
    async def add_slug(payload, context):
        payload["record"]["slug"] = payload["record"]["title"].lower()
"""

from stashbase.core.hooks.hook_events import (
    HookEvent,
    HookPhase,
    get_all_events,
    get_all_phases,
    is_valid_event,
)
from stashbase.core.hooks.hook_registry import HookRegistry, RegisteredHook

__all__ = [
    "HookRegistry",
    "RegisteredHook",
    "HookEvent",
    "HookPhase",
    "get_all_events",
    "get_all_phases",
    "is_valid_event",
]
