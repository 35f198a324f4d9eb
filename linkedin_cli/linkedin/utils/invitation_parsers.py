"""
Parsers for received-invitation payloads served by flagship-web.

Two payload generations exist. Older pages embed the legacy invitation entity
(entityUrn, sharedSecret, invitationType, sentTime, ...) as tagged fields; newer
pages only render component blocks keyed by `urn:li:invitation:<id>` with the
visible text, followed by a few tagged fields for the inviter.
"""
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from linkedin_cli.schemas.entities import (
    EPOCH,
    NormalizedConnection,
    NormalizedInvitation,
    profile_url_for,
)
from .parsers import parse_invitation

logger = logging.getLogger(__name__)

LEGACY_INVITATION_RE = re.compile(
    r'"entityUrn":"(urn:li:fsd_invitation:[^"]+)"[\s\S]{0,4000}?'
    r'"sharedSecret":"([^"]*)"[\s\S]{0,4000}?'
    r'"invitationType":"([^"]+)"[\s\S]{0,4000}?'
    r'"sentTime":(\d+)[\s\S]{0,4000}?'
    r'"sharedConnections":\{"count":(\d+)\}[\s\S]{0,4000}?'
    r'"miniProfile":\{([\s\S]{0,2000}?)\}'
)
LEGACY_INVITATION_MARKER = '"entityUrn":"urn:li:fsd_invitation:'
MESSAGE_RE = re.compile(r'"message":"([^"]+)"')

COMPONENT_KEY_RE = re.compile(r'"componentKey":"urn:li:invitation:(\d+)"')
CHILDREN_TEXT_RE = re.compile(r'"children":\["((?:[^"\\]|\\.)*)"\]')
INVITING_LINE_RE = re.compile(
    r"^(.+?)(?:,|\s+(?:is inviting you|follows you|wants to connect|invited you))",
)
RELATIVE_AGO_RE = re.compile(r"(\d+)\s*(minute|min|hour|hr|day|week|wk)s?\s+ago", re.IGNORECASE)
MUTUAL_OTHERS_RE = re.compile(r"and (\d+) other mutual connections?", re.IGNORECASE)
MUTUAL_COUNT_RE = re.compile(r"^(\d+) mutual connections?", re.IGNORECASE)
PROFILE_URL_RE = re.compile(r'"url":"(https:\/\/www\.linkedin\.com\/in\/([^/"?#]+)\/?)"')

UI_LABELS = {
    "Accept", "Ignore", "Message", "Reply", "Pending", "Show more", "See all",
    "Manage", "Invitations", "View profile", "Premium", "premium",
}

_UNIT_DELTAS = {
    "minute": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "wk": timedelta(weeks=1),
}


def _decode(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


def _field(chunk: str, name: str) -> str:
    match = re.search(rf'"{name}":"((?:[^"\\]|\\.)*)"', chunk)
    return _decode(match.group(1)) if match else ""


def parse_relative_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    "Today", "Yesterday" and "<n> <unit> ago" to an absolute time.

    Returns None for anything else.
    """
    now = now or datetime.now(timezone.utc)
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered in ("today", "just now"):
        return now
    if lowered == "yesterday":
        return now - timedelta(days=1)
    match = RELATIVE_AGO_RE.search(stripped)
    if match:
        return now - _UNIT_DELTAS[match.group(2).lower()] * int(match.group(1))
    return None


def parse_shared_connection_count(text: str) -> Optional[int]:
    """Mutual-connection count from lines such as "Fraser Marlow and 1 other mutual connection"."""
    match = MUTUAL_OTHERS_RE.search(text)
    if match:
        return int(match.group(1)) + 1
    match = MUTUAL_COUNT_RE.search(text.strip())
    if match:
        return int(match.group(1))
    if re.search(r"\band\b.+\bare mutual connections\b", text):
        return 2
    if re.search(r"\bis a mutual connection\b", text):
        return 1
    return None


def _is_candidate_text(text: str) -> bool:
    stripped = text.strip()
    if not stripped or stripped in UI_LABELS:
        return False
    if "mutual connection" in stripped.lower():
        return False
    if parse_relative_date(stripped, EPOCH) is not None:
        return False
    return not stripped.startswith(("http", "$"))


def _parse_legacy_invitations(payload: str) -> List[NormalizedInvitation]:
    results: List[NormalizedInvitation] = []
    seen: Set[str] = set()
    for match in LEGACY_INVITATION_RE.finditer(payload):
        urn = match.group(1)
        if urn in seen:
            continue
        next_index = payload.find(LEGACY_INVITATION_MARKER, match.start() + 1)
        chunk = payload[match.start():next_index if next_index != -1 else len(payload)]
        mini_chunk = match.group(6) or ""
        headline_match = re.search(r'"(?:occupation|headline)":"([^"]*)"', mini_chunk)

        raw: Dict[str, Any] = {
            "entityUrn": urn,
            "sharedSecret": match.group(2),
            "invitationType": match.group(3),
            "sentTime": int(match.group(4)),
            "sharedConnections": {"count": int(match.group(5))},
            "genericInviter": {
                "miniProfile": {
                    "publicIdentifier": _field(mini_chunk, "publicIdentifier"),
                    "firstName": _field(mini_chunk, "firstName"),
                    "lastName": _field(mini_chunk, "lastName"),
                    "occupation": headline_match.group(1) if headline_match else "",
                },
            },
        }
        message_match = MESSAGE_RE.search(chunk)
        if message_match:
            raw["message"] = message_match.group(1)

        seen.add(urn)
        results.append(parse_invitation(raw))
    return results


def _parse_component_block(invitation_id: str, block: str, now: datetime) -> NormalizedInvitation:
    texts = [_decode(m.group(1)).strip() for m in CHILDREN_TEXT_RE.finditer(block)]

    name = ""
    name_index = -1
    for index, text in enumerate(texts):
        inviting = INVITING_LINE_RE.match(text)
        if inviting and ("connect" in text or "follows you" in text or "invit" in text):
            name = inviting.group(1).strip()
            name_index = index
            break

    candidates = [
        (index, text) for index, text in enumerate(texts)
        if index != name_index and _is_candidate_text(text)
    ]
    if name_index < 0 and candidates:
        name_index, name = candidates.pop(0)
    following = [text for index, text in candidates if index > name_index]
    headline = following[0] if following else ""
    message = following[1] if len(following) > 1 else None

    shared_connections = 0
    sent_at = EPOCH
    for text in texts:
        count = parse_shared_connection_count(text)
        if count is not None:
            shared_connections = count
            continue
        relative = parse_relative_date(text, now)
        if relative is not None:
            sent_at = relative

    first_name = _field(block, "firstName")
    last_name = _field(block, "lastName")
    if not first_name and not last_name and name:
        parts = name.split()
        first_name, last_name = parts[0], " ".join(parts[1:])

    url_match = PROFILE_URL_RE.search(block)
    username = url_match.group(2) if url_match else ""
    profile_id = _field(block, "profileId")

    inviter = NormalizedConnection(
        urn=f"urn:li:fsd_profile:{profile_id}" if profile_id else "",
        username=username,
        first_name=first_name,
        last_name=last_name,
        headline=headline,
        profile_url=profile_url_for(username),
    )
    return NormalizedInvitation(
        invitation_id=invitation_id,
        urn=f"urn:li:invitation:{invitation_id}",
        shared_secret=_field(block, "validationToken") or _field(block, "sharedSecret"),
        type=_field(block, "invitationType"),
        inviter=inviter,
        message=message,
        shared_connections=shared_connections,
        sent_at=sent_at,
    )


def _parse_component_invitations(payload: str, now: datetime) -> List[NormalizedInvitation]:
    matches = list(COMPONENT_KEY_RE.finditer(payload))
    results: List[NormalizedInvitation] = []
    seen: Set[str] = set()
    for index, match in enumerate(matches):
        invitation_id = match.group(1)
        if invitation_id in seen:
            continue
        end = matches[index + 1].start() if index + 1 < len(matches) else len(payload)
        seen.add(invitation_id)
        results.append(_parse_component_block(invitation_id, payload[match.start():end], now))
    return results


def parse_invitations_from_flagship_rsc(
    payload: str,
    now: Optional[datetime] = None,
) -> List[NormalizedInvitation]:
    """
    Received invitations from a flagship-web payload, in document order.

    The tagged legacy grammar is tried first; the component-block grammar is
    used only when it finds nothing.
    """
    invitations = _parse_legacy_invitations(payload)
    if invitations:
        return invitations
    invitations = _parse_component_invitations(payload, now or datetime.now(timezone.utc))
    logger.debug(f"[PARSER] Component-block invitation grammar matched {len(invitations)} invitations")
    return invitations
