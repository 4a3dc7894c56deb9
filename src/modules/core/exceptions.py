"""Transport-level exceptions shared by every backend gateway.

The gateway raises these; the service layer lets them propagate so the
caller can surface them to the operator.  Nothing is patched locally
when one is raised.
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """The backend call failed (non-success response or network failure)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(GatewayError):
    """The backend answered, but the body does not honour the API contract."""
