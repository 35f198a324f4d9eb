"""
Shared utility for resolving a person reference to a profile URN.

Accepts a username ("peggyrayzis"), a profile URL
("https://www.linkedin.com/in/peggyrayzis") or a profile URN
("urn:li:fsd_profile:ACo..." / "urn:li:member:123"). Usernames go through a
chain of lookups because the dash identity endpoint is not always allowed.
"""
import json
import logging
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from linkedin_cli.core.config import Settings
from linkedin_cli.core.debug import get_debug_logger
from linkedin_cli.core.exceptions import AuthError, LinkedInApiError, LinkedInError
from linkedin_cli.schemas.entities import ResolvedRecipient
from ..headers import build_web_headers
from .parsers import parse_profile, read_elements
from .url_parser import parse_linkedin_url

logger = logging.getLogger(__name__)

PROFILE_URN_RE = re.compile(r"^urn:li:fsd_profile:ACo[A-Za-z0-9_-]+$")
MEMBER_URN_RE = re.compile(r"^urn:li:member:\d+$")
ANY_PROFILE_URN_RE = re.compile(r"urn:li:(?:fsd_profile|fs_miniProfile):ACo[A-Za-z0-9_-]+")
ANY_MEMBER_URN_RE = re.compile(r"urn:li:member:\d+")
PROFILE_ID_FIELD_RE = re.compile(r'"profileId":"(ACo[A-Za-z0-9_-]+)"')


def normalize_profile_urn(urn: str) -> str:
    """fs_miniProfile URNs name the same entity as fsd_profile URNs."""
    if urn and urn.startswith("urn:li:fs_miniProfile:"):
        return urn.replace("urn:li:fs_miniProfile:", "urn:li:fsd_profile:", 1)
    return urn or ""


def _json_or_empty(response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class RecipientCache:
    """
    Best-effort record of handle -> URN, used only to warn when a handle
    starts resolving to a different person.
    """

    def __init__(self, path: Path, debug):
        self.path = path
        self._debug = debug

    def _load(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, cache: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(cache), encoding="utf-8")
        except OSError as e:
            logger.debug(f"[RECIPIENT] Could not write recipient cache {self.path}: {e}")

    def record(self, key: str, urn: str) -> Optional[str]:
        """
        Store the URN for a handle.

        Returns:
            The previous URN if it differs from the new one, else None
        """
        if not key or not urn:
            return None
        cache = self._load()
        previous = (cache.get(key) or {}).get("urn", "") if isinstance(cache.get(key), dict) else ""
        cache[key] = {"urn": urn, "updatedAt": int(time.time() * 1000)}
        self._save(cache)
        if previous and previous != urn:
            self._debug.warning(f"warning=profile_urn_changed key={key} prev={previous} next={urn}")
            logger.warning(f"[RECIPIENT] Profile URN for {key} changed from {previous} to {urn}")
            return previous
        return None


class RecipientResolver:
    """Resolves usernames, profile URLs and URNs to (username, URN)."""

    def __init__(self, client, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or getattr(client, "settings", None) or Settings()
        self._debug = get_debug_logger("recipient", self.settings.LI_DEBUG_RECIPIENT)
        cache_path = self.settings.LI_RECIPIENT_CACHE_PATH or str(
            Path(tempfile.gettempdir()) / "li-recipient-cache.json"
        )
        self.cache = RecipientCache(Path(cache_path), self._debug)

    async def resolve(self, identifier: str) -> ResolvedRecipient:
        """
        Raises:
            ValueError: If the identifier is empty or does not denote a profile
            LinkedInError: If every lookup fails
        """
        trimmed = (identifier or "").strip()
        if not trimmed:
            raise ValueError("Invalid input: identifier is required")

        parsed = parse_linkedin_url(trimmed)
        self._debug.debug(f"input={trimmed} parsed={parsed.type if parsed else 'null'}")
        if parsed is None:
            raise ValueError(f"Invalid input: {identifier} is not a valid LinkedIn profile")
        if parsed.type != "profile":
            raise ValueError(f"Invalid input: cannot resolve {parsed.type} URL to a profile")

        if parsed.identifier.startswith("urn:li:"):
            resolved = await self.lookup_by_urn(parsed.identifier)
        else:
            resolved = await self.lookup_by_username(parsed.identifier)

        self.cache.record(resolved.username or parsed.identifier, resolved.urn)
        return resolved

    async def _dash_lookup(self, member_identity: str) -> Dict[str, Any]:
        response = await self.client.request(
            f"/identity/dash/profiles?q=memberIdentity&memberIdentity={quote(member_identity, safe='')}"
        )
        return _json_or_empty(response)

    async def lookup_by_urn(self, urn: str) -> ResolvedRecipient:
        self._debug.debug(f"lookupProfileByUrn urn={urn}")
        data = await self._dash_lookup(urn)
        elements = read_elements(data)
        if not elements:
            self._debug.debug(f"lookupProfileByUrn not found urn={urn}")
            raise LinkedInError(f"Profile not found for URN: {urn}")
        first = elements[0]
        return ResolvedRecipient(username=first.get("publicIdentifier") or "", urn=first.get("entityUrn") or "")

    async def lookup_by_username(self, username: str) -> ResolvedRecipient:
        self._debug.debug(f"lookupProfileByUsername username={username}")
        dash_error: Optional[LinkedInApiError] = None
        try:
            data = await self._dash_lookup(username)
        except LinkedInApiError as e:
            if e.status != 403:
                raise
            self._debug.debug(f"dash lookup forbidden username={username}")
            dash_error = e
            data = {}

        elements = read_elements(data)
        if elements:
            first = elements[0]
            return ResolvedRecipient(
                username=first.get("publicIdentifier") or username,
                urn=first.get("entityUrn") or "",
            )

        self._debug.debug(f"dash lookup empty username={username}")
        if self.settings.LI_ENABLE_PROFILEVIEW:
            resolved = await self._lookup_by_profile_view(username)
            if resolved:
                return resolved
        else:
            self._debug.debug(f"profileView skipped username={username}")

        resolved = await self._lookup_by_html(username)
        if resolved:
            return resolved

        self._debug.debug(f"falling back to /me username={username}")
        resolved = await self._lookup_self(username)
        if resolved:
            return resolved

        if dash_error is not None:
            raise dash_error
        raise LinkedInError(f"Profile not found: {username}")

    async def _lookup_by_profile_view(self, username: str) -> Optional[ResolvedRecipient]:
        try:
            response = await self.client.request(f"/identity/profiles/{quote(username, safe='')}/profileView")
        except AuthError:
            raise
        except LinkedInError as e:
            self._debug.debug(f"profileView failed username={username} error={e}")
            return None
        profile = parse_profile(_json_or_empty(response))
        if not profile.urn:
            return None
        return ResolvedRecipient(username=profile.username or username, urn=profile.urn)

    async def _fetch_profile_html(self, username: str) -> Optional[str]:
        headers = build_web_headers(self.client.credentials)
        url = f"https://www.linkedin.com/in/{quote(username, safe='')}/"
        response = await self.client.request_absolute(url, headers=headers, allow_redirect_response=True)
        self._debug.debug(f"profileHtml status={response.status_code} username={username}")

        if response.status_code == 302:
            location = response.headers.get("location", "")
            if location:
                next_url = location if location.startswith("http") else f"https://www.linkedin.com{location}"
                self._debug.debug(f"profileHtml redirect={next_url}")
                response = await self.client.request_absolute(
                    next_url, headers=headers, allow_redirect_response=True
                )
        if not response.is_success:
            return None
        return response.text

    async def _lookup_by_html(self, username: str) -> Optional[ResolvedRecipient]:
        try:
            html = await self._fetch_profile_html(username)
        except AuthError:
            raise
        except LinkedInError as e:
            self._debug.debug(f"profileHtml failed username={username} error={e}")
            return None
        if not html:
            return None

        found = extract_profile_urn_from_html(html, username)
        if found is None:
            self._debug.debug(f"profileHtml urn not found username={username}")
            return None

        self._debug.debug(f"profileHtml urn={found.urn} username={username}")
        if found.urn.startswith("urn:li:member:"):
            try:
                return await self.lookup_by_urn(found.urn)
            except AuthError:
                raise
            except LinkedInError:
                pass
        return found

    async def _lookup_self(self, username: str) -> Optional[ResolvedRecipient]:
        response = await self.client.request("/me")
        data = _json_or_empty(response)
        included = data.get("included") if isinstance(data.get("included"), list) else []
        mini = data.get("miniProfile")
        if not isinstance(mini, dict):
            mini = next((item for item in included if isinstance(item, dict) and item.get("publicIdentifier")), None)
        if mini is None and included and isinstance(included[0], dict):
            mini = included[0]
        mini = mini or {}

        if mini.get("publicIdentifier") != username:
            return None
        profile_urn = normalize_profile_urn(mini.get("entityUrn") or mini.get("dashEntityUrn") or "")
        if profile_urn:
            return ResolvedRecipient(username=username, urn=profile_urn)
        if mini.get("objectUrn"):
            return await self.lookup_by_urn(mini["objectUrn"])
        return None


def extract_profile_urn_from_html(html: str, username: str) -> Optional[ResolvedRecipient]:
    """
    Find the profile URN for `username` in a profile page.

    Preference order: a profileId near the matching publicIdentifier, a
    profile URN near it, any profileId, the longest profile URN, the longest
    member URN.
    """
    text = (
        html.replace("\\u002F", "/")
        .replace("&quot;", '"')
        .replace("&#34;", '"')
        .replace("&#x22;", '"')
        .replace("&amp;", "&")
    )
    escaped = re.escape(username)

    def first_group(*patterns: str) -> str:
        for pattern in patterns:
            match = re.search(pattern, text)
            if match:
                return match.group(1)
        return ""

    id_near_identifier = first_group(
        rf'"publicIdentifier":"{escaped}"[\s\S]{{0,1200}}?"profileId":"(ACo[A-Za-z0-9_-]+)"',
        rf'"profileId":"(ACo[A-Za-z0-9_-]+)"[\s\S]{{0,1200}}?"publicIdentifier":"{escaped}"',
    )
    urn_near_identifier = normalize_profile_urn(first_group(
        rf'"publicIdentifier":"{escaped}"[\s\S]{{0,1200}}?(urn:li:(?:fsd_profile|fs_miniProfile):ACo[A-Za-z0-9_-]+)',
        rf'(urn:li:(?:fsd_profile|fs_miniProfile):ACo[A-Za-z0-9_-]+)[\s\S]{{0,1200}}?"publicIdentifier":"{escaped}"',
    ))
    any_profile_id = PROFILE_ID_FIELD_RE.search(text)
    profile_urns = [
        urn for urn in (normalize_profile_urn(m) for m in ANY_PROFILE_URN_RE.findall(text))
        if PROFILE_URN_RE.match(urn)
    ]
    member_urns = [urn for urn in ANY_MEMBER_URN_RE.findall(text) if MEMBER_URN_RE.match(urn)]

    if id_near_identifier:
        urn = f"urn:li:fsd_profile:{id_near_identifier}"
    elif urn_near_identifier and PROFILE_URN_RE.match(urn_near_identifier):
        urn = urn_near_identifier
    elif any_profile_id:
        urn = f"urn:li:fsd_profile:{any_profile_id.group(1)}"
    elif profile_urns:
        urn = max(profile_urns, key=len)
    elif member_urns:
        urn = max(member_urns, key=len)
    else:
        return None

    identifier_match = re.search(rf'"publicIdentifier":"({escaped})"', text) or re.search(
        r'"publicIdentifier":"([^"]+)"', text
    )
    return ResolvedRecipient(
        username=identifier_match.group(1) if identifier_match else username,
        urn=urn,
    )


async def resolve_recipient(client, identifier: str, settings: Optional[Settings] = None) -> ResolvedRecipient:
    """Resolve a username, profile URL or profile URN to (username, URN)."""
    return await RecipientResolver(client, settings).resolve(identifier)
