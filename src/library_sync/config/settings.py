"""Application configuration settings."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.errors import config_error
from ..utils.retry import RetryPolicy


S = TypeVar("S", bound=BaseSettings)

_COMMON_CONFIG = dict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_ignore_empty=True,
)


class SourceAccountSettings(BaseSettings):
    """Credentials of the account whose library is copied."""

    client_id: str
    client_secret: str
    refresh_token: str

    model_config = SettingsConfigDict(env_prefix="SOURCE_", **_COMMON_CONFIG)


class TargetAccountSettings(BaseSettings):
    """Credentials of the account that receives the library."""

    client_id: str
    client_secret: str
    refresh_token: str
    playlist_id: str

    model_config = SettingsConfigDict(env_prefix="TARGET_", **_COMMON_CONFIG)


class TrackFilter(BaseModel):
    """Metadata filter applied to saved tracks. Unset fields do not filter."""

    artists: Optional[List[str]] = None
    min_popularity: Optional[int] = None
    max_popularity: Optional[int] = None
    after: Optional[datetime] = None
    before: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.artists and all(
            value is None
            for value in (self.min_popularity, self.max_popularity, self.after, self.before)
        )


class SyncSettings(BaseSettings):
    """Sync behaviour."""

    remove_missing_tracks: bool = Field(default=True, description="Remove playlist tracks no longer saved")
    unfollow_missing_artists: bool = Field(default=False, description="Unfollow artists the source no longer follows")
    page_size: int = Field(default=50, ge=1, le=50)

    # Track filter
    artists: Optional[List[str]] = None
    min_popularity: Optional[int] = Field(default=None, ge=0, le=100)
    max_popularity: Optional[int] = Field(default=None, ge=0, le=100)
    added_after: Optional[datetime] = None
    added_before: Optional[datetime] = None

    model_config = SettingsConfigDict(env_prefix="SYNC_", **_COMMON_CONFIG)

    @property
    def track_filter(self) -> TrackFilter:
        return TrackFilter(
            artists=self.artists,
            min_popularity=self.min_popularity,
            max_popularity=self.max_popularity,
            after=self.added_after,
            before=self.added_before
        )


class RetrySettings(BaseSettings):
    """Backoff schedule for API calls."""

    max_retries: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)

    model_config = SettingsConfigDict(env_prefix="RETRY_", **_COMMON_CONFIG)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            backoff_factor=self.backoff_factor
        )


class ApiSettings(BaseSettings):
    """Spotify Web API endpoints and client-side limits."""

    api_base_url: str = "https://api.spotify.com/v1"
    accounts_url: str = "https://accounts.spotify.com"
    rate_limit_calls: int = Field(default=100, ge=1)
    rate_limit_window: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_", **_COMMON_CONFIG)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file_path: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="LOG_", **_COMMON_CONFIG)


class AppSettings(BaseModel):
    """Main application settings, passed explicitly to every component."""

    name: str = "Library Sync"
    version: str = "1.0.0"

    source: SourceAccountSettings
    target: TargetAccountSettings
    sync: SyncSettings = Field(default_factory=SyncSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env_name(settings_cls: Type[BaseSettings], field_name: str) -> str:
    return f"{settings_cls.model_config.get('env_prefix', '')}{field_name}".upper()


def _build(
    settings_cls: Type[S],
    env_file: Optional[Union[str, Path]],
    missing: List[str],
    invalid: Dict[str, str]
) -> Optional[S]:
    try:
        return settings_cls(_env_file=env_file)
    except ValidationError as e:
        for error in e.errors():
            name = _env_name(settings_cls, str(error["loc"][0])) if error["loc"] else settings_cls.__name__
            if error["type"] == "missing":
                missing.append(name)
            else:
                invalid[name] = error["msg"]
        return None


def load_settings(env_file: Optional[Union[str, Path]] = ".env") -> AppSettings:
    """Load settings from the environment and an optional ``.env`` file.

    Raises:
        ClassifiedError: CONFIG error naming every missing or invalid variable
    """
    missing: List[str] = []
    invalid: Dict[str, str] = {}

    parts = {
        "source": _build(SourceAccountSettings, env_file, missing, invalid),
        "target": _build(TargetAccountSettings, env_file, missing, invalid),
        "sync": _build(SyncSettings, env_file, missing, invalid),
        "retry": _build(RetrySettings, env_file, missing, invalid),
        "api": _build(ApiSettings, env_file, missing, invalid),
        "logging": _build(LoggingSettings, env_file, missing, invalid),
    }

    if missing:
        raise config_error(f"Missing required environment variables: {', '.join(missing)}")
    if invalid:
        details = ", ".join(f"{name} ({message})" for name, message in invalid.items())
        raise config_error(f"Invalid environment variables: {details}")

    return AppSettings(**parts)
