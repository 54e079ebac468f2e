"""Client identity derivation for rate limiting.

An identity is the string a client's counters and per-identity overrides are
keyed by. By default it is the client's network address; deployments that
trust their bearer tokens can key authenticated clients by token subject
instead, so users behind one NAT address do not share a budget.
"""

from __future__ import annotations

import ipaddress
from typing import Literal

IdentitySource = Literal["address", "subject"]

SUBJECT_IDENTITY_PREFIX = "user:"
UNKNOWN_ADDRESS = "unknown"


def normalize_client_address(address: str | None) -> str:
    """Normalize a client address string.

    IPv4-mapped IPv6 addresses collapse to their IPv4 form so that a client
    is counted once whether it arrives over an IPv4 or dual-stack socket.
    Values that are not IP addresses (test clients, unix sockets) are returned
    stripped but otherwise unchanged.

    Examples:
        >>> normalize_client_address("::ffff:127.0.0.1")
        '127.0.0.1'
        >>> normalize_client_address("2001:db8::1")
        '2001:db8::1'
        >>> normalize_client_address(None)
        'unknown'
    """
    if not address or not address.strip():
        return UNKNOWN_ADDRESS

    raw = address.strip()
    try:
        parsed = ipaddress.ip_address(raw)
    except ValueError:
        return raw

    if isinstance(parsed, ipaddress.IPv6Address) and parsed.ipv4_mapped is not None:
        return str(parsed.ipv4_mapped)
    return str(parsed)


def resolve_identity(
    address: str | None,
    *,
    is_authenticated: bool,
    subject: str | None = None,
    source: IdentitySource = "address",
) -> str:
    """Pick the identity a request is throttled under.

    Args:
        address: Raw client address as reported by the server.
        is_authenticated: Whether the bearer token verified.
        subject: Verified token subject, if any.
        source: ``address`` keys everyone by network address; ``subject`` keys
            authenticated requests carrying a subject by that subject.

    Returns:
        Identity string.
    """
    if source == "subject" and is_authenticated and subject:
        return f"{SUBJECT_IDENTITY_PREFIX}{subject}"
    return normalize_client_address(address)
