import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.services.sync.errors import AuthError
from app.services.sync.oauth import Credential, CredentialManager

from tests.fakes import ACCOUNTS_BASE, FakeZoho, build_credentials, build_http_client


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh() -> None:
    calls = 0

    async def slow_token_endpoint(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return httpx.Response(200, json={"access_token": f"token-{calls}", "expires_in": 3600})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(slow_token_endpoint))
    manager = build_credentials(http_client)

    credentials = await asyncio.gather(*(manager.get_valid_credential() for _ in range(10)))

    assert calls == 1
    assert {c.access_token for c in credentials} == {"token-1"}


@pytest.mark.asyncio
async def test_cached_credential_is_reused() -> None:
    fake = FakeZoho()
    manager = build_credentials(build_http_client(fake))

    first = await manager.get_valid_credential()
    second = await manager.get_valid_credential()

    assert fake.token_calls == 1
    assert first is second
    assert first.expires_at > datetime.now(timezone.utc) + timedelta(seconds=3500)


@pytest.mark.asyncio
async def test_credential_inside_skew_margin_is_refreshed() -> None:
    fake = FakeZoho()
    manager = build_credentials(build_http_client(fake), skew_seconds=60)
    manager._credential = Credential("old-token", datetime.now(timezone.utc) + timedelta(seconds=30))

    assert manager.is_expiring()
    credential = await manager.get_valid_credential()

    assert credential.access_token == "token-1"
    assert fake.token_calls == 1


@pytest.mark.asyncio
async def test_refresh_failure_reaches_every_waiter_and_is_not_cached() -> None:
    fake = FakeZoho()
    fake.token_status = 401
    manager = build_credentials(build_http_client(fake))

    results = await asyncio.gather(
        *(manager.get_valid_credential() for _ in range(5)),
        return_exceptions=True
    )

    assert all(isinstance(r, AuthError) for r in results)
    assert fake.token_calls == 1
    assert manager.credential is None

    fake.token_status = 200
    credential = await manager.get_valid_credential()
    assert credential.access_token == "token-2"
    assert fake.token_calls == 2


@pytest.mark.asyncio
async def test_error_body_with_200_status_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "invalid_code"})

    manager = build_credentials(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(AuthError, match="invalid_code"):
        await manager.get_valid_credential()


@pytest.mark.asyncio
async def test_unreachable_token_endpoint_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    manager = build_credentials(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(AuthError, match="unreachable"):
        await manager.get_valid_credential()


@pytest.mark.asyncio
async def test_token_request_sends_refresh_grant() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"access_token": "abc"})

    manager = build_credentials(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    credential = await manager.get_valid_credential()

    assert seen["url"] == f"{ACCOUNTS_BASE}/oauth/v2/token"
    assert "grant_type=refresh_token" in seen["body"]
    assert "refresh_token=refresh" in seen["body"]
    assert "client_id=cid" in seen["body"]
    # expires_in missing: one hour
    assert credential.expires_at > datetime.now(timezone.utc) + timedelta(minutes=59)


@pytest.mark.asyncio
async def test_force_refresh_skips_when_token_already_replaced() -> None:
    fake = FakeZoho()
    manager = build_credentials(build_http_client(fake))

    current = await manager.get_valid_credential()
    same = await manager.force_refresh("some-older-token")
    assert same is current
    assert fake.token_calls == 1

    renewed = await manager.force_refresh(current.access_token)
    assert renewed.access_token == "token-2"
    assert fake.token_calls == 2


@pytest.mark.asyncio
async def test_missing_oauth_config_raises_auth_error() -> None:
    fake = FakeZoho()
    manager = CredentialManager(
        build_http_client(fake),
        accounts_base_url=ACCOUNTS_BASE,
        client_id=None,
        client_secret="secret",
        refresh_token="refresh"
    )

    with pytest.raises(AuthError, match="not configured"):
        await manager.get_valid_credential()
    assert fake.token_calls == 0
