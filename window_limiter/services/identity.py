"""Client identity resolution.

An identity is the string that scopes all accounting: two requests with the
same identity and bucket share an event history. Resolvers are plain
callables taking the request object and returning a string (or None when
they cannot decide, in which case the default applies).
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable

IdentityResolver = Callable[[Any], "str | None"]

UNKNOWN_IDENTITY = "unknown"


def remote_address(request: Any) -> str | None:
    """Return the originating network address of a Starlette-style request."""

    client = getattr(request, "client", None)
    host = getattr(client, "host", None) if client is not None else None
    return host or None


def hash_identity(value: str, length: int = 16) -> str:
    """Short SHA-256 digest used to log or key identities without exposing them."""

    return hashlib.sha256(value.encode()).hexdigest()[:length]


def header_identifier(header: str, *, prefix: str | None = None) -> IdentityResolver:
    """Build a resolver keyed on a request header (e.g. an API key).

    The header value is hashed so raw credentials never reach the store.
    Requests without the header fall back to the default resolver.

    Example:
        >>> resolver = header_identifier("X-API-Key", prefix="api_key")
    """

    label = prefix or header.lower()

    def resolve(request: Any) -> str | None:
        value = request.headers.get(header)
        if not value:
            return None
        return f"{label}:{hashlib.sha256(value.encode()).hexdigest()[:32]}"

    return resolve


def resolve_identity(request: Any, resolver: IdentityResolver | None = None) -> str:
    """Map a request to a client identity.

    Args:
        request: Request context exposing at least ``client.host``.
        resolver: Optional custom resolver overriding the network address.

    Returns:
        The custom identity when the resolver produced one, else the network
        address, else ``"unknown"``.
    """

    if resolver is not None:
        identity = resolver(request)
        if identity:
            return str(identity)
    return remote_address(request) or UNKNOWN_IDENTITY
