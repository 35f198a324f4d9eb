"""
Parsers for structured (JSON) LinkedIn API responses.

Every parser here is total: malformed or partial input degrades to empty
strings, zero counts and the epoch rather than raising.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Optional

from linkedin_cli.schemas.entities import (
    NormalizedConnection,
    NormalizedConversation,
    NormalizedInvitation,
    NormalizedMessage,
    NormalizedProfile,
    datetime_from_ms,
    profile_url_for,
)
from .url_parser import extract_id_from_urn

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]


def _as_dict(value: Any) -> JsonDict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def read_elements(data: Any) -> List[JsonDict]:
    """The object entries of a Voyager collection's `elements` array."""
    return [element for element in _as_list(_as_dict(data).get("elements")) if isinstance(element, dict)]


def as_count(value: Any) -> int:
    """Non-negative count; NaN, infinities and non-numbers read as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, int(value))


def extract_localized(field: Any) -> str:
    """
    Read a possibly-localized text field.

    Strings are returned unchanged. Objects of the form
    {"localized": {"en_US": "...", ...}} resolve to en_US, then to the first
    locale present. Anything else is "".
    """
    if field is None:
        return ""
    if isinstance(field, str):
        return field
    if not isinstance(field, dict):
        return ""
    localized = field.get("localized")
    if not isinstance(localized, dict):
        return ""
    if "en_US" in localized:
        return _str(localized["en_US"])
    for value in localized.values():
        return _str(value)
    return ""


def parse_mini_profile(mini_profile: Optional[JsonDict], urn: str = "") -> NormalizedConnection:
    """Mini profile (messaging, invitations, search) to a connection entry."""
    mini = _as_dict(mini_profile)
    username = _str(mini.get("publicIdentifier"))
    return NormalizedConnection(
        urn=urn,
        username=username,
        first_name=_str(mini.get("firstName")),
        last_name=_str(mini.get("lastName")),
        headline=_str(mini.get("occupation")),
        profile_url=profile_url_for(username),
    )


# Profile shape matchers, tried in order. Each takes the raw response plus the
# resolved profile URN and returns the object holding the profile fields.
ProfileShape = Callable[[JsonDict, Optional[str]], Optional[JsonDict]]


def _profile_urn(raw: JsonDict) -> Optional[str]:
    data = _as_dict(raw.get("data"))
    for candidate in (
        data.get("*profile"),
        data.get("profile"),
        _as_dict(raw.get("profile")).get("entityUrn"),
        raw.get("entityUrn"),
    ):
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def _match_top_level_profile(raw: JsonDict, urn: Optional[str]) -> Optional[JsonDict]:
    profile = raw.get("profile")
    return profile if isinstance(profile, dict) and profile else None


def _match_data_profile(raw: JsonDict, urn: Optional[str]) -> Optional[JsonDict]:
    profile = _as_dict(raw.get("data")).get("profile")
    return profile if isinstance(profile, dict) and profile else None


def _match_included_by_urn(raw: JsonDict, urn: Optional[str]) -> Optional[JsonDict]:
    if not urn:
        return None
    for item in _as_list(raw.get("included")):
        if isinstance(item, dict) and item.get("entityUrn") == urn:
            return item
    return None


def _match_included_with_identifier(raw: JsonDict, urn: Optional[str]) -> Optional[JsonDict]:
    for item in _as_list(raw.get("included")):
        if isinstance(item, dict) and isinstance(item.get("publicIdentifier"), str):
            return item
    return None


def _match_raw(raw: JsonDict, urn: Optional[str]) -> Optional[JsonDict]:
    return raw


PROFILE_SHAPES: List[ProfileShape] = [
    _match_top_level_profile,
    _match_data_profile,
    _match_included_by_urn,
    _match_included_with_identifier,
    _match_raw,
]


def parse_profile(raw: JsonDict) -> NormalizedProfile:
    """
    Normalize a profile response.

    Handles profileView responses, dash FullProfile responses with the profile
    in `included`, and bare profile objects.
    """
    raw = _as_dict(raw)
    profile_urn = _profile_urn(raw)
    profile: JsonDict = raw
    for shape in PROFILE_SHAPES:
        matched = shape(raw, profile_urn)
        if matched is not None:
            profile = matched
            break

    username = _str(profile.get("publicIdentifier"))
    industry = extract_localized(profile.get("industryName"))
    summary = extract_localized(profile.get("summary"))
    return NormalizedProfile(
        urn=_str(profile.get("entityUrn")) or profile_urn or "",
        username=username,
        first_name=extract_localized(profile.get("firstName")),
        last_name=extract_localized(profile.get("lastName")),
        headline=extract_localized(profile.get("headline")),
        location=extract_localized(profile.get("locationName")),
        profile_url=profile_url_for(username),
        industry=industry or None,
        summary=summary or None,
    )


def parse_connection(raw: JsonDict) -> NormalizedConnection:
    """Element of the legacy /relationships connections list ("to" + decorated "to~")."""
    raw = _as_dict(raw)
    urn = _str(raw.get("to"))
    profile = raw.get("to~")
    if not isinstance(profile, dict):
        return NormalizedConnection(urn=urn, profile_url=profile_url_for(""))
    username = _str(profile.get("publicIdentifier"))
    return NormalizedConnection(
        urn=urn,
        username=username,
        first_name=extract_localized(profile.get("firstName")),
        last_name=extract_localized(profile.get("lastName")),
        headline=extract_localized(profile.get("headline")),
        profile_url=profile_url_for(username),
    )


def parse_message(raw: JsonDict, conversation_id: str = "") -> NormalizedMessage:
    raw = _as_dict(raw)
    message_event = _as_dict(_as_dict(raw.get("eventContent")).get("messageEvent"))
    mini_profile = _as_dict(raw.get("from")).get("miniProfile")
    return NormalizedMessage(
        message_id=_str(raw.get("dashEntityUrn")),
        conversation_id=conversation_id,
        sender=parse_mini_profile(mini_profile),
        body=_str(message_event.get("body")),
        created_at=datetime_from_ms(raw.get("createdAt")),
        attachments=_as_list(message_event.get("attachments")),
    )


def parse_conversation(raw: JsonDict) -> NormalizedConversation:
    raw = _as_dict(raw)
    conversation_id = _str(raw.get("dashEntityUrn"))
    participants = [
        parse_mini_profile(_as_dict(p).get("miniProfile"))
        for p in _as_list(raw.get("participants"))
    ]
    events = _as_list(raw.get("events"))
    last_message = parse_message(events[0], conversation_id).body if events else ""

    return NormalizedConversation(
        conversation_id=conversation_id,
        participant=participants[0] if participants else parse_mini_profile(None),
        participants=participants,
        last_message=last_message,
        last_activity_at=datetime_from_ms(raw.get("lastActivityAt")),
        unread_count=as_count(raw.get("unreadCount")),
        total_event_count=as_count(raw.get("totalEventCount")),
        read=bool(raw.get("read")),
        group_chat=bool(raw.get("groupChat")),
    )


def parse_invitation(raw: JsonDict) -> NormalizedInvitation:
    """Element of /relationships/invitationViews (also fed by the RSC invitation grammar)."""
    raw = _as_dict(raw)
    mini_profile = _as_dict(raw.get("genericInviter")).get("miniProfile")
    urn = _str(raw.get("entityUrn"))
    message = raw.get("message")
    return NormalizedInvitation(
        invitation_id=extract_id_from_urn(urn),
        urn=urn,
        shared_secret=_str(raw.get("sharedSecret")),
        type=_str(raw.get("invitationType")),
        inviter=parse_mini_profile(mini_profile, _str(raw.get("inviterUrn"))),
        message=message if isinstance(message, str) else None,
        shared_connections=as_count(_as_dict(raw.get("sharedConnections")).get("count")),
        sent_at=datetime_from_ms(raw.get("sentTime")),
    )


def _messenger_member(participant: JsonDict) -> NormalizedConnection:
    member = _as_dict(_as_dict(participant.get("participantType")).get("member"))
    profile_url = _str(member.get("profileUrl"))
    username = ""
    if "/in/" in profile_url:
        username = profile_url.split("/in/", 1)[1].strip("/").split("/")[0].split("?")[0]
    return NormalizedConnection(
        urn=_str(participant.get("hostIdentityUrn")) or _str(participant.get("entityUrn")),
        username=username,
        first_name=extract_localized(_as_dict(member.get("firstName")).get("text") or member.get("firstName")),
        last_name=extract_localized(_as_dict(member.get("lastName")).get("text") or member.get("lastName")),
        headline=extract_localized(_as_dict(member.get("headline")).get("text") or member.get("headline")),
        profile_url=profile_url_for(username),
    )


def parse_messenger_conversations(raw: JsonDict) -> List[NormalizedConversation]:
    """
    Conversations from the voyagerMessagingGraphQL messenger queries.
    """
    raw = _as_dict(raw)
    data = _as_dict(raw.get("data")) or raw
    collection: JsonDict = {}
    for key in ("messengerConversationsBySyncToken", "messengerConversations"):
        if isinstance(data.get(key), dict):
            collection = data[key]
            break

    conversations = []
    for element in _as_list(collection.get("elements")):
        element = _as_dict(element)
        participants = [
            _messenger_member(_as_dict(p)) for p in _as_list(element.get("conversationParticipants"))
        ]
        messages = _as_list(_as_dict(element.get("messages")).get("elements"))
        last_message = ""
        if messages:
            last_message = _str(_as_dict(_as_dict(messages[0]).get("body")).get("text"))
        conversations.append(NormalizedConversation(
            conversation_id=_str(element.get("entityUrn")),
            participant=participants[0] if participants else parse_mini_profile(None),
            participants=participants,
            last_message=last_message,
            last_activity_at=datetime_from_ms(element.get("lastActivityAt")),
            unread_count=as_count(element.get("unreadCount")),
            total_event_count=len(messages),
            read=bool(element.get("read")),
            group_chat=bool(element.get("groupChat")),
        ))
    logger.debug(f"[PARSER] Parsed {len(conversations)} messenger conversations")
    return conversations
