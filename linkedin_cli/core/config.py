"""
Configuration settings for the LinkedIn data-access layer.

Settings are read from the process environment (and an optional .env file).
A single Settings instance is built at the boundary and passed explicitly to
the client, the query-ID cache and the services.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Runtime settings loaded from environment variables.
    """
    # Session credentials
    LINKEDIN_LI_AT: Optional[str] = Field(default=None)
    LINKEDIN_JSESSIONID: Optional[str] = Field(default=None)

    # Request pacing (milliseconds between requests)
    LI_REQUEST_DELAY_MIN_MS: Optional[int] = Field(default=None)
    LI_REQUEST_DELAY_MAX_MS: Optional[int] = Field(default=None)
    LI_REQUEST_TIMEOUT_SECONDS: float = Field(default=30.0)

    # Query-ID cache and discovery
    LINKEDIN_QUERY_ID_CACHE_PATH: Optional[str] = Field(default=None)
    LINKEDIN_MESSAGING_HAR: str = Field(default="www.linkedin.com.fullv3.har")
    LI_QUERY_ID_MAX_BUNDLES: int = Field(default=200)
    LI_QUERY_ID_TIMEOUT_MS: int = Field(default=20000)

    # Diagnostics
    LI_DEBUG_QUERY_IDS: bool = Field(default=False)
    LI_DEBUG_CONNECTIONS: bool = Field(default=False)
    LI_DEBUG_CONNECTIONS_DUMP: bool = Field(default=False)
    LI_DEBUG_RECIPIENT: bool = Field(default=False)
    DEBUG_LINKEDIN_RESPONSES: bool = Field(default=False)
    DEBUG_RESPONSES_DIR: str = Field(default="debug_responses")

    # Feature toggles
    LI_EXPERIMENTAL_CONNECTIONS_OF_SEARCH_DASH: bool = Field(default=False)
    LI_ENABLE_PROFILEVIEW: bool = Field(default=False)
    LI_RECIPIENT_CACHE_PATH: Optional[str] = Field(default=None)

    @field_validator("LINKEDIN_JSESSIONID", mode="before")
    def strip_jsessionid_quotes(cls, v: Optional[str]) -> Optional[str]:
        """
        Browsers export JSESSIONID wrapped in double quotes.
        """
        if isinstance(v, str):
            return v.strip().strip('"')
        return v

    @field_validator("LI_REQUEST_DELAY_MIN_MS", "LI_REQUEST_DELAY_MAX_MS", mode="before")
    def parse_delay(cls, v: Union[str, int, None]) -> Optional[int]:
        """
        Blank values mean "not set"; anything else must be a non-negative integer.
        """
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        value = int(v)
        if value < 0:
            raise ValueError(f"Request delays must be non-negative (got {value})")
        return value

    @field_validator("LI_REQUEST_DELAY_MAX_MS")
    def check_delay_range(cls, v: Optional[int], info) -> Optional[int]:
        min_value = info.data.get("LI_REQUEST_DELAY_MIN_MS")
        if v is not None and min_value is not None and min_value > v:
            raise ValueError(
                f"LI_REQUEST_DELAY_MIN_MS ({min_value}) cannot be greater than "
                f"LI_REQUEST_DELAY_MAX_MS ({v})"
            )
        return v

    @field_validator("LI_QUERY_ID_MAX_BUNDLES", "LI_QUERY_ID_TIMEOUT_MS")
    def check_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Discovery limits must be positive (got {v})")
        return v

    class Config:
        """Config for the BaseSettings class."""
        env_file = ".env"
        case_sensitive = True
        extra = 'ignore'  # Ignore unrelated variables from the environment


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load a .env file into the environment (when it exists) and build Settings.

    Args:
        env_file: Optional path to a .env file. Defaults to ./.env

    Returns:
        A freshly constructed Settings instance
    """
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        logger.debug(f"[ENV] Loaded .env from: {env_path}")
    else:
        logger.debug(f"[ENV] No .env file at {env_path}, using process environment")
    return Settings()
