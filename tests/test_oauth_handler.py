"""Tests for the authorization code flow and the token script."""

import sys
import os
import asyncio
import urllib.parse

import pytest
from aiohttp import web
from aiohttp import test_utils

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from library_sync.auth.oauth_handler import SpotifyOAuthHandler
from library_sync.auth.spotify_auth import REQUIRED_SCOPES
from library_sync.auth.token_cli import obtain_refresh_token, parse_args
from library_sync.utils.errors import ClassifiedError, ErrorKind


def make_accounts_app(received):
    async def token(request):
        form = await request.post()
        received.append(dict(form))
        if form.get("code") == "bad-code":
            return web.Response(status=400, text='{"error": "invalid_grant"}')
        return web.json_response({
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 3600,
            "scope": " ".join(REQUIRED_SCOPES),
        })

    app = web.Application()
    app.router.add_post("/api/token", token)
    return app


class TestAuthorizationUrl:
    """Test the consent page URL."""

    def test_contains_scopes_and_state(self):
        handler = SpotifyOAuthHandler("client-id", "client-secret")

        url, state = handler.get_authorization_url()
        query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)

        assert url.startswith("https://accounts.spotify.com/authorize?")
        assert query["client_id"] == ["client-id"]
        assert query["response_type"] == ["code"]
        assert query["redirect_uri"] == ["http://localhost:8888/callback"]
        assert query["scope"][0].split(" ") == REQUIRED_SCOPES
        assert query["state"] == [state]

    def test_state_changes_per_request(self):
        handler = SpotifyOAuthHandler("client-id", "client-secret")

        _, first = handler.get_authorization_url()
        _, second = handler.get_authorization_url()

        assert first != second


class TestCallbackFlow:
    """Test the local callback server against a fake accounts service."""

    @pytest.mark.asyncio
    async def test_successful_callback_delivers_tokens(self):
        received = []
        accounts = test_utils.TestServer(make_accounts_app(received))
        await accounts.start_server()

        try:
            async with SpotifyOAuthHandler(
                "client-id", "client-secret", accounts_url=str(accounts.make_url("/"))
            ) as handler:
                handler._token_future = asyncio.get_running_loop().create_future()
                async with test_utils.TestClient(test_utils.TestServer(handler.create_app())) as browser:
                    login = await browser.get("/login", allow_redirects=False)
                    assert login.status == 302
                    assert "state=" in login.headers["Location"]

                    callback = await browser.get(
                        "/callback", params={"code": "good-code", "state": handler.oauth_state}
                    )
                    assert callback.status == 200

                tokens = await handler.wait_for_tokens(timeout=1)
        finally:
            await accounts.close()

        assert tokens["refresh_token"] == "refresh-1"
        assert received[0]["grant_type"] == "authorization_code"
        assert received[0]["code"] == "good-code"

    @pytest.mark.asyncio
    async def test_state_mismatch_is_rejected(self):
        handler = SpotifyOAuthHandler("client-id", "client-secret")
        handler._token_future = asyncio.get_running_loop().create_future()
        handler.get_authorization_url()

        async with test_utils.TestClient(test_utils.TestServer(handler.create_app())) as browser:
            response = await browser.get("/callback", params={"code": "c", "state": "forged"})
            assert response.status == 400

        with pytest.raises(ClassifiedError) as exc_info:
            await handler.wait_for_tokens(timeout=1)

        assert exc_info.value.kind is ErrorKind.AUTH

    @pytest.mark.asyncio
    async def test_failed_exchange_is_reported(self):
        received = []
        accounts = test_utils.TestServer(make_accounts_app(received))
        await accounts.start_server()

        try:
            async with SpotifyOAuthHandler(
                "client-id", "client-secret", accounts_url=str(accounts.make_url("/"))
            ) as handler:
                with pytest.raises(ClassifiedError) as exc_info:
                    await handler.exchange_code_for_token("bad-code")
        finally:
            await accounts.close()

        assert exc_info.value.kind is ErrorKind.API
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_wait_times_out(self):
        handler = SpotifyOAuthHandler("client-id", "client-secret")
        handler._token_future = asyncio.get_running_loop().create_future()

        with pytest.raises(ClassifiedError) as exc_info:
            await handler.wait_for_tokens(timeout=0.01)

        assert exc_info.value.kind is ErrorKind.AUTH
        assert "timed out" in exc_info.value.message


class TestTokenScript:
    """Test the command line entry point."""

    def test_account_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_rejects_unknown_account(self):
        with pytest.raises(SystemExit):
            parse_args(["--account", "other"])

    def test_defaults(self):
        args = parse_args(["--account", "target"])

        assert args.account == "target"
        assert args.port == 8888
        assert args.timeout == 300

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch, capsys):
        monkeypatch.delenv("SOURCE_CLIENT_ID", raising=False)
        monkeypatch.delenv("SOURCE_CLIENT_SECRET", raising=False)

        assert await obtain_refresh_token("source") == 1
        assert "SOURCE_CLIENT_ID" in capsys.readouterr().out
