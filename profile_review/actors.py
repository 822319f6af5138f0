"""
Acting-RM resolution.

Precedence, first non-empty wins:
  1. explicit id from the request body
  2. explicit id from the query string
  3. the session resolver (default: the configured header)

Called once per request at the HTTP boundary.
"""

from typing import Callable, Optional

from fastapi import Request

SessionResolver = Callable[[Request], Optional[str]]


def resolve_actor_id(
    explicit: Optional[str],
    fallback_session: Optional[Callable[[], Optional[str]]] = None,
) -> Optional[str]:
    """The explicit id if it is a non-empty string, else whatever the session yields."""
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    if fallback_session is None:
        return None
    resolved = fallback_session()
    return resolved.strip() if isinstance(resolved, str) and resolved.strip() else None


def header_session_resolver(header: str) -> SessionResolver:
    """Session resolver reading the acting RM from a request header."""

    def resolve(request: Request) -> Optional[str]:
        return request.headers.get(header)

    return resolve


def request_actor_id(
    request: Request,
    session_resolver: SessionResolver,
    body_rm_id: Optional[str] = None,
) -> Optional[str]:
    """Apply the full precedence to one request."""
    query_rm_id = request.query_params.get("rm_id") or request.query_params.get("rmId")
    return resolve_actor_id(
        body_rm_id,
        lambda: resolve_actor_id(query_rm_id, lambda: session_resolver(request)),
    )
