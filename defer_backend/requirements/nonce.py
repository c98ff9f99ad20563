"""
CSP nonce generation.

One NonceProvider is owned by each AssetRegistry, so in the Flask adapter
every request gets its own nonce. Nothing is cached at module level.

https://content-security-policy.com/nonce/
"""

import base64
import secrets
import threading
from typing import Optional

# 18 bytes -> 24 base64 characters, no padding needed.
NONCE_BYTES = 18


def generate_nonce(num_bytes: int = NONCE_BYTES) -> str:
    """
    Generate a fresh nonce from the system CSPRNG.

    The value is base64 with '/', '+' and '=' removed so it can be used
    unquoted in attributes and paths.
    """
    encoded = base64.b64encode(secrets.token_bytes(num_bytes)).decode('ascii')
    return encoded.replace('/', '').replace('+', '').replace('=', '')


class NonceProvider:
    """Lazily generates one nonce and returns it on every later call."""

    def __init__(self, nonce: Optional[str] = None):
        self._nonce = nonce
        self._lock = threading.Lock()

    def get_nonce(self) -> str:
        """Return the cached nonce, generating it on first use."""
        if self._nonce is None:
            with self._lock:
                # Another thread may have won the race while we waited
                if self._nonce is None:
                    self._nonce = generate_nonce()
        return self._nonce

    def set_nonce(self, nonce: str) -> None:
        """Use a nonce generated earlier in the pipeline (e.g. by a proxy)."""
        with self._lock:
            self._nonce = nonce
