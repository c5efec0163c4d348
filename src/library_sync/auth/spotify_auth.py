"""Access token provider for an account's API client."""

from ..utils.errors import ClassifiedError, ErrorKind, auth_error
from ..utils.logging import get_logger
from ..utils.retry import RetryExecutor


REQUIRED_SCOPES = [
    "user-library-read",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-follow-read",
    "user-follow-modify",
]


class SpotifyAuth:
    """Refreshes the bearer token of a ``SpotifyClient`` before each operation."""

    def __init__(self, client, retry_executor: RetryExecutor):
        self.client = client
        self.retry_executor = retry_executor
        self.logger = get_logger(self.__class__.__name__)

    async def refresh_token(self) -> None:
        """Obtain a fresh access token, retrying transient failures.

        Raises:
            ClassifiedError: AUTH error wrapping the last failure
        """
        try:
            await self.retry_executor.execute(
                self.client.refresh_access_token,
                description="refresh access token"
            )
        except ClassifiedError as e:
            if e.kind is ErrorKind.AUTH:
                raise
            self.logger.error("Failed to refresh access token", status_code=e.status_code, error=str(e))
            raise auth_error("Failed to refresh access token", cause=e) from e
