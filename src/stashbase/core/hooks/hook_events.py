"""Hook event and phase names.

Every Resource operation maps onto one or more lifecycle events, and each
event has a ``before`` and an ``after`` phase.

Payload shapes per event:
    validate: {record, schema} before; {record, schema, errors} after
    create:   {record} before and after
    save:     {record} before and after
    update:   {query, operations} before and after
    remove:   {query, options} before; {query, options, removed_count} after
    find:     {query} before; {records} after
"""


class HookEvent:
    """Lifecycle event names accepted by Schema.before() / Schema.after()."""

    VALIDATE = "validate"
    CREATE = "create"
    SAVE = "save"
    UPDATE = "update"
    REMOVE = "remove"
    FIND = "find"


class HookPhase:
    """The two phases every event is split into."""

    BEFORE = "before"
    AFTER = "after"


def get_all_events() -> list[str]:
    """Get all available hook event names."""
    return [
        value
        for name, value in vars(HookEvent).items()
        if not name.startswith("_") and isinstance(value, str)
    ]


def get_all_phases() -> list[str]:
    """Get both hook phase names."""
    return [HookPhase.BEFORE, HookPhase.AFTER]


def is_valid_event(event: str) -> bool:
    """Check whether ``event`` names a known lifecycle event."""
    return event in get_all_events()
