#!/usr/bin/env python3
"""
Obtain a refresh token for the source or target account.

Usage:
    library-sync-token --account source
    library-sync-token --account target --port 8888
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .oauth_handler import DEFAULT_PORT, DEFAULT_TIMEOUT, SpotifyOAuthHandler
from ..utils.errors import ClassifiedError
from ..utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

ACCOUNT_PREFIXES = {
    "source": "SOURCE",
    "target": "TARGET",
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Obtain a Spotify refresh token for one account")
    parser.add_argument("-a", "--account", required=True, choices=sorted(ACCOUNT_PREFIXES),
                        help="Account to authorize")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT,
                        help="Port of the local callback server")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="Seconds to wait for the authorization")
    parser.add_argument("--env-file", default=".env",
                        help="Environment file holding the client credentials")
    return parser.parse_args(argv)


async def obtain_refresh_token(account: str, port: int = DEFAULT_PORT, timeout: float = DEFAULT_TIMEOUT) -> int:
    """Run the authorization flow for ``account``. Returns a process exit code."""
    prefix = ACCOUNT_PREFIXES[account]
    client_id = os.getenv(f"{prefix}_CLIENT_ID")
    client_secret = os.getenv(f"{prefix}_CLIENT_SECRET")

    if not client_id or not client_secret:
        print(f"Credentials of the {account} account were not found.")
        print("Please set the following environment variables:")
        print(f"  - {prefix}_CLIENT_ID")
        print(f"  - {prefix}_CLIENT_SECRET")
        return 1

    async with SpotifyOAuthHandler(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=f"http://localhost:{port}/callback"
    ) as oauth_handler:
        try:
            tokens = await oauth_handler.authenticate_user(port=port, timeout=timeout)
        except ClassifiedError as e:
            logger.error("Authentication failed", account=account, **e.to_log_dict())
            print(f"Authentication failed: {e.message}")
            return 1

    print("\n--- Authentication successful ---")
    print(f"Account: {account}")
    print(f"Refresh token: {tokens.get('refresh_token')}")
    print("---------------------------------")
    print(f"\nCopy the refresh token above into {prefix}_REFRESH_TOKEN in your .env file")
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    """Console script entry point."""
    args = parse_args(argv)
    load_dotenv(args.env_file)
    setup_logging(log_level="INFO")

    try:
        exit_code = asyncio.run(obtain_refresh_token(args.account, args.port, args.timeout))
    except KeyboardInterrupt:
        print("\nInterrupted, stopping the server")
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
