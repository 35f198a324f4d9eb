"""
Utilities for classifying LinkedIn URLs and URNs.
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlsplit

URN_RE = re.compile(r"^urn:li:(\w+):(.+)$")

_URN_TYPES = {
    "activity": "post",
    "ugcPost": "post",
    "share": "post",
    "member": "profile",
    "fsd_profile": "profile",
    "company": "company",
    "job": "job",
}


@dataclass(frozen=True)
class ParsedLinkedInUrl:
    """What a user-supplied URL/URN points at."""
    type: str  # profile | post | company | job
    identifier: str


def extract_id_from_urn(urn: str) -> str:
    """
    Return the trailing id of a `urn:li:...` value; other input is returned as is.

    >>> extract_id_from_urn("urn:li:fsd_profile:ACoAAB")
    'ACoAAB'
    """
    if isinstance(urn, str) and urn.startswith("urn:li:"):
        return urn.rsplit(":", 1)[-1]
    return urn if isinstance(urn, str) else ""


def _parse_urn(value: str) -> Optional[ParsedLinkedInUrl]:
    match = URN_RE.match(value)
    if not match:
        return None
    kind = _URN_TYPES.get(match.group(1))
    if kind is None:
        return None
    return ParsedLinkedInUrl(type=kind, identifier=value)


def _parse_url(value: str) -> Optional[ParsedLinkedInUrl]:
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    host = (parts.hostname or "").lower()
    if not (host == "linkedin.com" or host.endswith(".linkedin.com")):
        return None
    path = unquote(parts.path)

    match = re.match(r"^/in/([^/?#]+)", path)
    if match:
        return ParsedLinkedInUrl("profile", match.group(1))
    match = re.match(r"^/feed/update/(urn:li:\w+:\d+)", path)
    if match:
        return ParsedLinkedInUrl("post", match.group(1))
    match = re.search(r"^/posts/.*-(activity|ugcPost|share)-(\d+)", path)
    if match:
        return ParsedLinkedInUrl("post", f"urn:li:{match.group(1)}:{match.group(2)}")
    match = re.match(r"^/company/([^/?#]+)", path)
    if match:
        return ParsedLinkedInUrl("company", match.group(1))
    match = re.match(r"^/jobs/view/(\d+)", path)
    if match:
        return ParsedLinkedInUrl("job", match.group(1))
    return None


def parse_linkedin_url(value: str) -> Optional[ParsedLinkedInUrl]:
    """
    Classify a profile/post/company/job reference.

    Accepts URNs (returned whole as the identifier), http(s) linkedin.com
    URLs and bare usernames. Returns None for empty input, unknown URN types
    and URLs on other hosts.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    if value.startswith("urn:li:"):
        return _parse_urn(value)

    if value.startswith(("http://", "https://")):
        return _parse_url(value)

    return ParsedLinkedInUrl("profile", value)
