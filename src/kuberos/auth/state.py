"""Stateless CSRF protection for the OIDC redirect.

The ``state`` parameter is a hash over a shared secret and attributes of the
browser's request. Both legs of the handshake recompute it, so nothing is
stored server side and any replica can validate a callback. If a fingerprint
attribute changes between the legs the callback is rejected.
"""

import hashlib
import hmac
from collections.abc import Callable
from typing import Literal

from fastapi import Request

from kuberos.auth.models import RequestFingerprint

HEADER_FORWARDED_FOR = "x-forwarded-for"

ClientAddressSource = Literal["none", "forwarded_for", "remote_addr"]

# Takes a request and returns a difficult to predict yet deterministic state.
StateFn = Callable[[Request], str]


def request_fingerprint(request: Request, client_address: ClientAddressSource = "none") -> RequestFingerprint:
    """Extract the attributes the state is bound to from a request."""
    address = None
    if client_address == "forwarded_for":
        address = request.headers.get(HEADER_FORWARDED_FOR, "")
    elif client_address == "remote_addr":
        address = request.client.host if request.client else ""

    return RequestFingerprint(
        host=request.headers.get("host", ""),
        user_agent=request.headers.get("user-agent", ""),
        client_address=address,
    )


class StateValidator:
    """Generates and validates state tokens from request fingerprints."""

    def __init__(self, secret: str | bytes, client_address: ClientAddressSource = "none"):
        self._secret = secret.encode() if isinstance(secret, str) else secret
        self.client_address = client_address

    def generate(self, fingerprint: RequestFingerprint) -> str:
        h = hashlib.sha256(self._secret)
        for part in (fingerprint.host, fingerprint.user_agent, fingerprint.client_address):
            if part is None:
                continue
            h.update(b"\x00")
            h.update(part.encode())
        return h.hexdigest()

    def __call__(self, request: Request) -> str:
        return self.generate(request_fingerprint(request, self.client_address))


def validate_state(state_fn: StateFn, request: Request, supplied: str | None) -> bool:
    """Recompute the state for a request and compare it to the supplied one."""
    if not supplied:
        return False
    return hmac.compare_digest(state_fn(request).encode(), supplied.encode())
