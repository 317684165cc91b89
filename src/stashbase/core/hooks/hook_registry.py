"""Hook registry - ordered before/after callbacks per lifecycle event.

Each Schema owns one HookRegistry. Callbacks for one phase of one event run
strictly in registration order, one at a time; each callback (sync or
async) completes before the next one starts. A failing callback aborts the
chain and its exception propagates to the caller of trigger().
"""

import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from stashbase.core.hooks.hook_events import get_all_events, get_all_phases
from stashbase.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RegisteredHook:
    """Internal representation of a registered hook.

    Attributes:
        id: Unique identifier for this hook registration.
        event: The lifecycle event this hook is registered for.
        phase: "before" or "after".
        callback: Function called with (payload, context).
        registration_order: Order in which this hook was registered.
    """

    id: str
    event: str
    phase: str
    callback: Callable
    registration_order: int = 0


class HookRegistry:
    """Ordered hook lists keyed by (phase, event).

    Example:
        registry = HookRegistry()

        async def stamp(payload, context):
            payload["record"]["stamped"] = True

        registry.register("before", "create", stamp)
        payload = await registry.trigger("before", "create", {"record": {}}, context)
    """

    def __init__(self) -> None:
        self._hooks: dict[tuple[str, str], list[RegisteredHook]] = {}
        self._hook_map: dict[str, RegisteredHook] = {}
        self._registration_counter: int = 0

    def register(self, phase: str, event: str, callback: Callable) -> str:
        """Append a callback to the list for ``phase``/``event``.

        Args:
            phase: "before" or "after".
            event: Lifecycle event name (see HookEvent).
            callback: Callable accepting (payload, context). May be async.

        Returns:
            Unique hook_id string for later removal.

        Raises:
            ValueError: If the phase or event is unknown.
            TypeError: If callback is not callable.
        """
        if phase not in get_all_phases():
            raise ValueError(f"Unknown hook phase '{phase}'")
        if event not in get_all_events():
            raise ValueError(
                f"Unknown hook event '{event}'. Expected one of: {', '.join(get_all_events())}"
            )
        if not callable(callback):
            raise TypeError("Hook callback must be callable")

        hook_id = f"hook_{uuid.uuid4().hex[:12]}"
        self._registration_counter += 1

        hook = RegisteredHook(
            id=hook_id,
            event=event,
            phase=phase,
            callback=callback,
            registration_order=self._registration_counter,
        )
        self._hooks.setdefault((phase, event), []).append(hook)
        self._hook_map[hook_id] = hook

        logger.debug("Hook registered", hook_id=hook_id, hook_event=event, phase=phase)
        return hook_id

    def unregister(self, hook_id: str) -> bool:
        """Remove a registered hook.

        Returns:
            True if the hook was removed, False if it was not found.
        """
        hook = self._hook_map.pop(hook_id, None)
        if hook is None:
            logger.warning("Hook not found for unregister", hook_id=hook_id)
            return False

        key = (hook.phase, hook.event)
        remaining = [h for h in self._hooks.get(key, []) if h.id != hook_id]
        if remaining:
            self._hooks[key] = remaining
        else:
            self._hooks.pop(key, None)

        logger.debug("Hook unregistered", hook_id=hook_id, hook_event=hook.event, phase=hook.phase)
        return True

    async def trigger(
        self,
        phase: str,
        event: str,
        payload: dict[str, Any],
        context: Any = None,
    ) -> dict[str, Any]:
        """Run every callback registered for ``phase``/``event`` in order.

        Callbacks mutate ``payload`` in place. A callback returning a dict
        replaces the payload seen by the callbacks after it.

        Returns:
            The final payload.
        """
        # Snapshot so a callback registering hooks does not extend this run
        hooks = list(self._hooks.get((phase, event), ()))
        if not hooks:
            return payload

        logger.debug("Triggering hooks", hook_event=event, phase=phase, hook_count=len(hooks))

        current = payload
        for hook in hooks:
            try:
                result = await self._execute_hook(hook, current, context)
            except Exception as e:
                logger.error(
                    "Hook execution failed",
                    hook_id=hook.id,
                    hook_event=event,
                    phase=phase,
                    error=str(e),
                )
                raise
            if isinstance(result, dict):
                current = result
        return current

    async def _execute_hook(
        self,
        hook: RegisteredHook,
        payload: dict[str, Any],
        context: Any,
    ) -> Any:
        """Call one hook, awaiting it when it returns an awaitable."""
        result = hook.callback(payload, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def get_hooks(self, phase: str, event: str) -> list[RegisteredHook]:
        """Get the hooks registered for ``phase``/``event`` in run order."""
        return list(self._hooks.get((phase, event), ()))

    def get_hook_by_id(self, hook_id: str) -> Optional[RegisteredHook]:
        """Get a hook by its ID."""
        return self._hook_map.get(hook_id)

    def clear(self) -> int:
        """Remove all registered hooks.

        Returns:
            Number of hooks removed.
        """
        count = len(self._hook_map)
        self._hooks.clear()
        self._hook_map.clear()
        logger.debug("Hooks cleared", count=count)
        return count

    def __len__(self) -> int:
        return len(self._hook_map)
