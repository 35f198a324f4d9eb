"""
Pydantic schemas for normalized LinkedIn entities.

Attributes are snake_case; `model_dump(by_alias=True)` produces the camelCase
shape consumed by JSON output.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

PROFILE_BASE_URL = "https://www.linkedin.com/in/"
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def profile_url_for(username: str) -> str:
    return f"{PROFILE_BASE_URL}{username}"


def datetime_from_ms(value: Any) -> datetime:
    """Epoch milliseconds to an aware UTC datetime; anything unusable is the epoch."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return EPOCH
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


class LinkedInModel(BaseModel):
    """Base model: camelCase aliases, construction by field name allowed."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class NormalizedProfile(LinkedInModel):
    """Full profile as returned by profile lookups and /me."""
    urn: str = Field("", description="Profile URN (may be empty)")
    username: str = Field("", description="Public identifier")
    first_name: str = ""
    last_name: str = ""
    headline: str = ""
    location: str = ""
    profile_url: str = ""
    industry: Optional[str] = None
    summary: Optional[str] = None


class NormalizedConnection(LinkedInModel):
    """A person entry from a connections or search listing."""
    urn: str = ""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    headline: str = ""
    profile_url: str = ""
    connection_degree: Optional[str] = None

    @property
    def dedupe_key(self) -> str:
        return self.username or self.urn


class NormalizedMessage(LinkedInModel):
    message_id: str = ""
    conversation_id: str = ""
    sender: NormalizedConnection = Field(default_factory=NormalizedConnection)
    body: str = ""
    created_at: datetime = EPOCH
    attachments: List[Any] = Field(default_factory=list)


class NormalizedConversation(LinkedInModel):
    conversation_id: str = ""
    participant: NormalizedConnection = Field(default_factory=NormalizedConnection)
    participants: List[NormalizedConnection] = Field(default_factory=list)
    last_message: str = ""
    last_activity_at: datetime = EPOCH
    unread_count: int = 0
    total_event_count: int = 0
    read: bool = False
    group_chat: bool = False


class NormalizedInvitation(LinkedInModel):
    invitation_id: str = ""
    urn: str = ""
    shared_secret: str = ""
    type: str = ""
    inviter: NormalizedConnection = Field(default_factory=NormalizedConnection)
    message: Optional[str] = None
    shared_connections: int = 0
    sent_at: datetime = EPOCH


class NetworkInfo(LinkedInModel):
    followers_count: int = 0
    connections_count: int = 0


class ResolvedRecipient(LinkedInModel):
    username: str = ""
    urn: str = ""


class Paging(LinkedInModel):
    start: int = 0
    count: int = 0
    total: Optional[int] = None


class ConnectionsPage(LinkedInModel):
    """Result of a connections listing."""
    connections: List[NormalizedConnection] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)
    hit_max_iterations: bool = False


class SearchResult(LinkedInModel):
    """Result of a people search."""
    query: str = ""
    results: List[NormalizedConnection] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)
    hit_max_iterations: bool = False


class InvitationsPage(LinkedInModel):
    invitations: List[NormalizedInvitation] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)


class ConversationsPage(LinkedInModel):
    conversations: List[NormalizedConversation] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)


class MessagesPage(LinkedInModel):
    conversation_id: str = ""
    messages: List[NormalizedMessage] = Field(default_factory=list)
    paging: Paging = Field(default_factory=Paging)


class WhoAmI(LinkedInModel):
    profile: NormalizedProfile
    network_info: Optional[NetworkInfo] = None


def dump_json_ready(model: BaseModel) -> Dict[str, Any]:
    """camelCase dict with ISO timestamps, as printed by --json."""
    return model.model_dump(mode="json", by_alias=True)
