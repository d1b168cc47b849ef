"""
Origin Guard: coarse network-origin access control.

Runs before any cryptographic work. The address-prefix check is the access
boundary. The Origin/Referer check is advisory only: the header is supplied
by the client and can be spoofed, so a missing header is accepted.
"""

import logging
from typing import Iterable, Mapping, Optional

from .errors import ErrorCode, ForbiddenError


logger = logging.getLogger(__name__)

IPV4_MAPPED_PREFIX = "::ffff:"


def normalize_address(address: str) -> str:
    """Strip IPv4-in-IPv6 notation (``::ffff:1.2.3.4`` becomes ``1.2.3.4``)."""
    if IPV4_MAPPED_PREFIX in address:
        return address.split(IPV4_MAPPED_PREFIX, 1)[1]
    return address


def origin_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    """Declared page origin: the Origin header, falling back to Referer."""
    return headers.get("origin") or headers.get("referer") or None


class OriginGuard:
    """
    Address-prefix and origin-header filter.

    Allowed prefixes match either a full address (``127.0.0.1``) or the
    start of one (``192.168.``). Allowed origins match exactly.
    """

    def __init__(self, allowed_prefixes: Iterable[str], allowed_origins: Iterable[str]):
        self._prefixes = tuple(allowed_prefixes)
        self._origins = frozenset(allowed_origins)

    def address_allowed(self, address: Optional[str]) -> bool:
        if not address:
            return False
        normalized = normalize_address(address)
        return any(normalized.startswith(prefix) for prefix in self._prefixes)

    def origin_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        return origin in self._origins

    def check(self, address: Optional[str], origin: Optional[str]) -> None:
        """
        Apply the guard to one request.

        Args:
            address: Client network address
            origin: Origin or Referer header value, if any

        Raises:
            ForbiddenError: UnauthorizedIP or InvalidOrigin
        """
        logger.debug("Checking access for address %s", address)
        if not self.address_allowed(address):
            raise ForbiddenError(ErrorCode.UNAUTHORIZED_IP, f"address {address} matches no allowed prefix")

        if not self.origin_allowed(origin):
            raise ForbiddenError(ErrorCode.INVALID_ORIGIN, f"origin {origin!r} is not allowed")
