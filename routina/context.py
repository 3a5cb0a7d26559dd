"""
Request context handed to every middleware and handler alongside the request.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING
from dataclasses import dataclass, field

if TYPE_CHECKING:
    from routina.request import Request
    from routina.users.models import UserRecord


@dataclass
class RequestCtx:
    """
    Per-request context.

    Attributes:
        request: The HTTP request
        profile: User record resolved from the ``:userId`` path segment.
            Only identity resolution writes it; it lives as long as the request.
        identity: Whatever authentication attached, if any; private pages
            render only when it is set
        request_id: Identifier used in log lines
        state: Additional state dictionary
    """

    request: "Request"
    profile: Optional["UserRecord"] = None
    identity: Optional[Any] = None
    request_id: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def body(self) -> Dict[str, Any]:
        """Parsed request body."""
        return self.request.data
