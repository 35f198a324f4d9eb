"""
Utilities to retrieve the authenticated user's profile via /me.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from linkedin_cli.schemas.entities import NetworkInfo, NormalizedProfile, profile_url_for
from .parsers import as_count

logger = logging.getLogger(__name__)


def _find_me_mini_profile(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Legacy responses carry `miniProfile`; normalized ones put it in `included`.
    """
    mini = data.get("miniProfile")
    if isinstance(mini, dict):
        return mini
    included = data.get("included")
    if isinstance(included, list) and included and isinstance(included[0], dict):
        return included[0]
    return None


def parse_me_response(data: Dict[str, Any]) -> NormalizedProfile:
    """
    Raises:
        ValueError: If the response holds no mini profile
    """
    mini = _find_me_mini_profile(data if isinstance(data, dict) else {})
    if mini is None:
        raise ValueError("Could not parse profile from /me response")

    username = mini.get("publicIdentifier") or ""
    return NormalizedProfile(
        urn=mini.get("entityUrn") or mini.get("dashEntityUrn") or mini.get("objectUrn") or "",
        username=username,
        first_name=mini.get("firstName") or "",
        last_name=mini.get("lastName") or "",
        headline=mini.get("occupation") or "",
        location="",
        profile_url=profile_url_for(username),
    )


def parse_network_info(data: Dict[str, Any]) -> NetworkInfo:
    data = data if isinstance(data, dict) else {}
    # networkinfo is sometimes wrapped in `data` by the normalized encoding
    source = data.get("data") if isinstance(data.get("data"), dict) else data
    return NetworkInfo(
        followers_count=as_count(source.get("followersCount")),
        connections_count=as_count(source.get("connectionsCount")),
    )


async def fetch_me(client) -> NormalizedProfile:
    """
    Fetch and parse the authenticated user's profile.

    Args:
        client: LinkedInClient
    """
    logger.info("[ME] Fetching authenticated user's profile via /me")
    response = await client.request("/me")
    try:
        data = response.json()
    except ValueError:
        data = {}
    profile = parse_me_response(data)
    logger.info(f"[ME] Authenticated as {profile.username or profile.urn}")
    return profile


async def fetch_network_info(client, username: str) -> NetworkInfo:
    response = await client.request(f"/identity/profiles/{quote(username, safe='')}/networkinfo")
    try:
        data = response.json()
    except ValueError:
        data = {}
    return parse_network_info(data)
