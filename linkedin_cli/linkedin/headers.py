"""
Request header recipes.

Voyager API calls, flagship-web RSC calls and plain page navigation each need
a slightly different header set; all of them carry the session cookie.
"""
import json
import time
from datetime import datetime
from typing import Dict, Optional

from .auth import LinkedInCredentials

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CLIENT_VERSION = "0.2.3802"
VOYAGER_ACCEPT = "application/vnd.linkedin.normalized+json+2.1"
LINKEDIN_ORIGIN = "https://www.linkedin.com"


def _local_timezone_name() -> str:
    tz = datetime.now().astimezone().tzinfo
    key = getattr(tz, "key", None)
    if key:
        return key
    name = time.tzname[0] if time.tzname else ""
    return name or "UTC"


def build_li_track_header() -> str:
    """X-Li-Track client descriptor with the local timezone."""
    offset = datetime.now().astimezone().utcoffset()
    offset_hours = round(offset.total_seconds() / 3600, 2) if offset is not None else 0
    return json.dumps({
        "clientVersion": CLIENT_VERSION,
        "mpVersion": CLIENT_VERSION,
        "osName": "web",
        "timezoneOffset": offset_hours,
        "timezone": _local_timezone_name(),
        "deviceFormFactor": "DESKTOP",
        "mpName": "web",
    }, separators=(",", ":"))


def build_headers(credentials: LinkedInCredentials) -> Dict[str, str]:
    """Headers for Voyager REST/GraphQL calls."""
    return {
        "Cookie": credentials.cookie_header,
        "csrf-token": credentials.csrf_token,
        "User-Agent": USER_AGENT,
        "X-Li-Lang": "en_US",
        "X-Li-Track": build_li_track_header(),
        "X-Restli-Protocol-Version": "2.0.0",
        "Accept": VOYAGER_ACCEPT,
    }


def build_web_headers(credentials: LinkedInCredentials, accept: str = "text/html") -> Dict[str, str]:
    """Headers for page navigation and static bundle fetches."""
    return {
        "Cookie": credentials.cookie_header,
        "User-Agent": USER_AGENT,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.9",
        "sec-fetch-dest": "document" if "html" in accept else "script",
        "sec-fetch-mode": "navigate" if "html" in accept else "no-cors",
        "sec-fetch-site": "none",
    }


def build_flagship_headers(
    credentials: LinkedInCredentials,
    referer: str,
    page_instance: str,
    rsc_stream: bool = False,
    base_headers: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Headers for flagship-web RSC POSTs (connections pager, people search)."""
    headers = dict(base_headers) if base_headers is not None else build_headers(credentials)
    headers.update({
        "Accept": "*/*",
        "Content-Type": "application/json",
        "Origin": LINKEDIN_ORIGIN,
        "Referer": referer,
        "X-Li-Page-Instance": page_instance,
        "X-Li-Track": build_li_track_header(),
    })
    if rsc_stream:
        headers["X-Li-Rsc-Stream"] = "true"
    return headers
