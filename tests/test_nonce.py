"""
Tests for CSP nonce generation.

One nonce per registry: stable within it, unique across registries,
and always safe to drop into an attribute.
"""

import base64
import threading
from concurrent.futures import ThreadPoolExecutor

from defer_backend.requirements import AssetRegistry, NonceProvider, generate_nonce


class TestNonceGeneration:

    def test_nonce_is_not_empty(self):
        assert generate_nonce()

    def test_nonce_has_no_unsafe_characters(self):
        for _ in range(200):
            nonce = generate_nonce()
            assert '/' not in nonce
            assert '+' not in nonce
            assert '=' not in nonce

    def test_unsafe_characters_are_removed(self, monkeypatch):
        """Raw bytes that encode to '+' and '/' are stripped, not escaped."""
        raw = b'\xfb\xff\xbf' + b'nonce-bytes-15b'
        monkeypatch.setattr('defer_backend.requirements.nonce.secrets.token_bytes', lambda n: raw)
        nonce = generate_nonce()
        assert nonce == base64.b64encode(raw).decode('ascii')[4:]

    def test_length_from_18_bytes(self):
        assert len(generate_nonce()) <= 24


class TestNonceProvider:

    def test_nonce_is_cached(self):
        provider = NonceProvider()
        assert provider.get_nonce() == provider.get_nonce()

    def test_set_nonce_overrides(self):
        provider = NonceProvider()
        provider.get_nonce()
        provider.set_nonce('from-proxy')
        assert provider.get_nonce() == 'from-proxy'

    def test_concurrent_first_access_generates_once(self):
        provider = NonceProvider()
        barrier = threading.Barrier(8)

        def read():
            barrier.wait()
            return provider.get_nonce()

        with ThreadPoolExecutor(max_workers=8) as pool:
            nonces = set(pool.map(lambda _: read(), range(8)))
        assert len(nonces) == 1


class TestRegistryNonce:

    def test_same_registry_same_nonce(self, registry):
        assert registry.get_nonce() == registry.get_nonce()

    def test_registries_have_independent_nonces(self):
        assert AssetRegistry().get_nonce() != AssetRegistry().get_nonce()

    def test_registry_set_nonce(self, registry):
        registry.set_nonce('external')
        assert registry.get_nonce() == 'external'
