"""Hook context passed to every hook callback.

The context is created by the caller (typically per request or per
session) and threaded unchanged through every hook of one operation. The
engine never interprets it beyond filling in ``resource`` and
``request_id`` when they are empty.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class HookContext:
    """Context passed to all hook callbacks.

    Attributes:
        resource: Name of the resource running the operation.
        user: The acting user, if the caller has one.
        session: Caller-defined session object.
        request_id: Correlation ID for logging and tracing.
        extra: Free-form values shared between hooks of one operation.

    Example:
        async def audit(payload: dict, context: HookContext) -> None:
            logger.info("Record saved", request_id=context.request_id)
    """

    resource: Optional[str] = None
    user: Any = None
    session: Any = None
    request_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.request_id:
            self.request_id = f"hk_{uuid.uuid4().hex[:12]}"
