# Overview: Pytest coverage for the provider access token cache.

"""
Provider Token Cache Tests

A fake clock drives expiry: the provider answers expires_in=3600 and the
cache must refresh once now >= expiry - 300.
"""

import base64

import httpx
import pytest

from toursales.errors import AuthError, ProviderUnreachableError
from toursales.services.provider_token_cache import ProviderTokenCache


TOKEN_URL = "https://identity.provider.test/connect/token"


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_cache(fake_provider, clock):
    def _make(client_id="ecommerce-client", client_secret="client-secret", **kwargs):
        return ProviderTokenCache(
            TOKEN_URL,
            client_id,
            client_secret,
            "ozy_trip_ecommerce_api",
            transport=httpx.MockTransport(fake_provider.handler),
            clock=clock,
            **kwargs,
        )
    return _make


def test_token_is_reused_until_margin(make_cache, fake_provider, clock):
    cache = make_cache()

    assert cache.get_token() == "provider-token-1"
    clock.now += 3600 - 300 - 1
    assert cache.get_token() == "provider-token-1"
    assert fake_provider.operations() == ["token"]


def test_token_is_refreshed_inside_margin(make_cache, fake_provider, clock):
    cache = make_cache()
    cache.get_token()

    fake_provider.token_payload = {"access_token": "provider-token-2", "expires_in": 3600}
    clock.now += 3600 - 300
    assert cache.get_token() == "provider-token-2"
    assert fake_provider.operations() == ["token", "token"]


def test_token_without_expiry_is_not_reused(make_cache, fake_provider):
    fake_provider.token_payload = {"access_token": "short-lived"}
    cache = make_cache()

    cache.get_token()
    cache.get_token()
    assert fake_provider.operations() == ["token", "token"]


def test_request_uses_client_credentials_grant(make_cache, fake_provider):
    make_cache().get_token()

    _, method, path, body, headers = fake_provider.calls[0]
    assert method == "POST"
    assert path == "/connect/token"
    assert body == "grant_type=client_credentials&scope=ozy_trip_ecommerce_api"
    expected = base64.b64encode(b"ecommerce-client:client-secret").decode()
    assert headers["authorization"] == f"Basic {expected}"


def test_rejected_credentials(make_cache, fake_provider):
    fake_provider.script("token", status=401, json_body={"error": "invalid_client"})

    with pytest.raises(AuthError):
        make_cache().get_token()


def test_response_without_access_token(make_cache, fake_provider):
    fake_provider.token_payload = {"token_type": "Bearer", "expires_in": 3600}

    with pytest.raises(AuthError):
        make_cache().get_token()


def test_missing_credentials_never_call_remote(make_cache, fake_provider):
    with pytest.raises(AuthError):
        make_cache(client_secret=None).get_token()
    assert fake_provider.calls == []


def test_unreachable_token_endpoint(make_cache, fake_provider):
    fake_provider.script("token", unreachable=True)

    with pytest.raises(ProviderUnreachableError):
        make_cache().get_token()


def test_invalidate_forces_refresh(make_cache, fake_provider):
    cache = make_cache()
    cache.get_token()
    cache.invalidate()
    cache.get_token()
    assert fake_provider.operations() == ["token", "token"]


def test_state_never_exposes_token(make_cache, clock):
    cache = make_cache()
    assert cache.state() == {"cached": False, "valid": False, "expires_at": None}

    cache.get_token()
    state = cache.state()
    assert state["cached"] is True
    assert state["valid"] is True
    assert state["expires_at"].endswith("Z")
    assert "provider-token-1" not in str(state)


def test_without_single_flight_guard(make_cache, fake_provider):
    cache = make_cache(single_flight=False)
    assert cache.get_token() == "provider-token-1"
    assert cache.get_token() == "provider-token-1"
    assert fake_provider.operations() == ["token"]
