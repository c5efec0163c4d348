"""
OAuth Handler for Spotify Authorization Code Flow

This module runs the one-off authorization code flow that yields the
long-lived refresh token each account needs: it serves a local callback
server, redirects the user to the Spotify consent page and exchanges the
returned code for tokens.
"""

import asyncio
import base64
import secrets
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from aiohttp import web
import structlog

from .spotify_auth import REQUIRED_SCOPES
from ..utils.errors import api_error, auth_error, classify

logger = structlog.get_logger(__name__)

DEFAULT_PORT = 8888
DEFAULT_TIMEOUT = 300


class SpotifyOAuthHandler:
    """Handles the authorization code flow for one Spotify app."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = f"http://localhost:{DEFAULT_PORT}/callback",
        scopes: Optional[List[str]] = None,
        accounts_url: str = "https://accounts.spotify.com"
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(REQUIRED_SCOPES)

        self.auth_url = f"{accounts_url.rstrip('/')}/authorize"
        self.token_url = f"{accounts_url.rstrip('/')}/api/token"

        self.session: Optional[aiohttp.ClientSession] = None
        self.oauth_state: Optional[str] = None
        self.server_runner: Optional[web.AppRunner] = None
        self._token_future: Optional[asyncio.Future] = None

    async def __aenter__(self):
        if not self.session:
            self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop_oauth_server()
        if self.session:
            await self.session.close()
            self.session = None

    def get_authorization_url(self) -> Tuple[str, str]:
        """
        Generate the authorization URL for the user to visit.

        Returns:
            Tuple of (authorization_url, state); the callback must echo the state
        """
        self.oauth_state = secrets.token_urlsafe(32)

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": self.oauth_state
        }

        auth_url = f"{self.auth_url}?{urllib.parse.urlencode(params)}"

        logger.info(
            "Generated authorization URL",
            client_id=self.client_id[:8] + "...",
            scopes=self.scopes,
            redirect_uri=self.redirect_uri
        )

        return auth_url, self.oauth_state

    async def exchange_code_for_token(self, authorization_code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            ClassifiedError: API error with the token endpoint's status
        """
        if not self.session:
            self.session = aiohttp.ClientSession()

        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {credentials}"
        }
        data = {
            "grant_type": "authorization_code",
            "code": authorization_code,
            "redirect_uri": self.redirect_uri
        }

        logger.info("Exchanging authorization code for tokens")

        try:
            async with self.session.post(self.token_url, headers=headers, data=data) as response:
                if response.status != 200:
                    response_text = await response.text()
                    logger.error(
                        "Failed to exchange code for token",
                        status=response.status,
                        response=response_text[:200]
                    )
                    raise api_error(f"Token exchange failed: {response_text[:200]}", response.status)
                token_data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise classify(e)

        logger.info(
            "Successfully obtained tokens",
            expires_in=token_data.get("expires_in"),
            scopes=token_data.get("scope", "unknown")
        )
        return token_data

    def _finish(self, result: Any = None, error: Optional[BaseException] = None) -> None:
        if self._token_future is None or self._token_future.done():
            return
        if error is not None:
            self._token_future.set_exception(error)
        else:
            self._token_future.set_result(result)

    async def _login(self, request: web.Request) -> web.Response:
        auth_url, _ = self.get_authorization_url()
        raise web.HTTPFound(auth_url)

    async def _callback(self, request: web.Request) -> web.Response:
        code = request.query.get("code")
        returned_state = request.query.get("state")
        error = request.query.get("error")

        if error:
            logger.error("OAuth error received", error=error)
            self._finish(error=auth_error(f"Authorization was denied: {error}"))
            return web.Response(text=f"Authentication failed: {error}", status=400)

        if not code:
            logger.error("No authorization code received")
            self._finish(error=auth_error("No authorization code received"))
            return web.Response(text="Authentication failed: no authorization code received", status=400)

        if returned_state != self.oauth_state:
            logger.error("State mismatch in OAuth callback")
            self._finish(error=auth_error("State mismatch in OAuth callback"))
            return web.Response(text="Authentication failed: state mismatch", status=400)

        try:
            token_data = await self.exchange_code_for_token(code)
        except Exception as e:
            self._finish(error=e)
            return web.Response(text=f"Authentication failed: {e}", status=500)

        self._finish(result=token_data)
        return web.Response(text="Authentication complete. You can close this window.")

    def create_app(self) -> web.Application:
        """Web application serving ``/login`` and ``/callback``."""
        app = web.Application()
        app.router.add_get("/login", self._login)
        app.router.add_get("/callback", self._callback)
        return app

    async def start_oauth_server(self, host: str = "localhost", port: int = DEFAULT_PORT) -> str:
        """
        Start the local callback server.

        Returns:
            The login URL the user should open
        """
        self._token_future = asyncio.get_running_loop().create_future()

        self.server_runner = web.AppRunner(self.create_app())
        await self.server_runner.setup()

        site = web.TCPSite(self.server_runner, host, port)
        await site.start()

        login_url = f"http://{host}:{port}/login"
        logger.info("OAuth server started", port=port, login_url=login_url)
        return login_url

    async def stop_oauth_server(self) -> None:
        if self.server_runner:
            await self.server_runner.cleanup()
            self.server_runner = None
            logger.info("OAuth server stopped")

    async def wait_for_tokens(self, timeout: float = DEFAULT_TIMEOUT) -> Dict[str, Any]:
        """
        Wait until the callback delivered tokens.

        Raises:
            ClassifiedError: AUTH error on timeout, or the callback's failure
        """
        if self._token_future is None:
            raise auth_error("OAuth server is not running")

        try:
            return await asyncio.wait_for(self._token_future, timeout)
        except asyncio.TimeoutError:
            raise auth_error(f"Authentication timed out after {timeout:g} seconds")

    async def authenticate_user(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT
    ) -> Dict[str, Any]:
        """
        Complete the user authentication flow.

        Returns:
            Token data including ``refresh_token``
        """
        logger.info("Starting user authentication flow")

        login_url = await self.start_oauth_server(host, port)

        print(f"\n{'='*60}")
        print("SPOTIFY AUTHENTICATION REQUIRED")
        print(f"{'='*60}")
        print("Open the following URL to authorize the application:")
        print(f"\n{login_url}\n")
        print(f"Timeout: {timeout:g} seconds")
        print(f"{'='*60}\n")

        try:
            return await self.wait_for_tokens(timeout)
        finally:
            await self.stop_oauth_server()
