"""
Session credential resolution.

A LinkedIn web session is identified by two cookies: `li_at` (auth token) and
`JSESSIONID` (which doubles as the CSRF token). Values given on the command
line win over the LINKEDIN_LI_AT / LINKEDIN_JSESSIONID environment variables.
"""
import logging
from typing import Optional

from pydantic import BaseModel

from linkedin_cli.core.config import Settings
from linkedin_cli.core.exceptions import CredentialsError

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_MESSAGE = (
    "LinkedIn credentials not found. Set LINKEDIN_LI_AT and LINKEDIN_JSESSIONID "
    "environment variables, or pass --li-at and --jsessionid. Copy both cookie "
    "values from your browser's developer tools while logged into linkedin.com."
)


class LinkedInCredentials(BaseModel):
    """Immutable cookie bundle used to authenticate every request."""
    li_at: str
    jsession_id: str
    cookie_header: str
    csrf_token: str
    source: str

    class Config:
        frozen = True


def _strip_quotes(value: str) -> str:
    return value.strip().strip('"')


def build_cookie_header(li_at: str, jsession_id: str) -> str:
    return f'li_at={li_at}; JSESSIONID="{_strip_quotes(jsession_id)}"'


def resolve_credentials(
    li_at: Optional[str] = None,
    jsession_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> LinkedInCredentials:
    """
    Build the credential bundle from CLI values and/or the environment.

    Args:
        li_at: li_at cookie from --li-at
        jsession_id: JSESSIONID cookie from --jsessionid
        settings: Settings carrying LINKEDIN_LI_AT / LINKEDIN_JSESSIONID

    Raises:
        CredentialsError: If either cookie is missing
    """
    settings = settings or Settings()

    cli_li_at = li_at.strip() if li_at and li_at.strip() else None
    cli_jsession = _strip_quotes(jsession_id) if jsession_id and _strip_quotes(jsession_id) else None
    env_li_at = settings.LINKEDIN_LI_AT.strip() if settings.LINKEDIN_LI_AT else None
    env_jsession = _strip_quotes(settings.LINKEDIN_JSESSIONID) if settings.LINKEDIN_JSESSIONID else None

    final_li_at = cli_li_at or env_li_at
    final_jsession = cli_jsession or env_jsession
    if not final_li_at or not final_jsession:
        raise CredentialsError(MISSING_CREDENTIALS_MESSAGE)

    used_cli = bool(cli_li_at or cli_jsession)
    used_env = (cli_li_at is None and env_li_at is not None) or (cli_jsession is None and env_jsession is not None)
    if used_cli and used_env:
        source = "cli+env"
    elif used_cli:
        source = "cli"
    else:
        source = "env"

    logger.debug(f"[AUTH] Resolved credentials from {source}")
    return LinkedInCredentials(
        li_at=final_li_at,
        jsession_id=final_jsession,
        cookie_header=build_cookie_header(final_li_at, final_jsession),
        csrf_token=final_jsession,
        source=source,
    )
