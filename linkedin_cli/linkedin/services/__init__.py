"""
LinkedIn API services.

Each service module provides specific LinkedIn functionality:
- connections: Own connections and connections of another member
- search: People search
- invitations: Pending received invitations
- messages: Conversations and message threads
- profile: Member profiles and the authenticated identity
"""

from .base import LinkedInServiceBase
from .connections import LinkedInConnectionService
from .invitations import LinkedInInvitationService
from .messages import LinkedInMessageService
from .profile import LinkedInProfileService
from .search import LinkedInSearchService

__all__ = [
    'LinkedInServiceBase',
    'LinkedInConnectionService',
    'LinkedInInvitationService',
    'LinkedInMessageService',
    'LinkedInProfileService',
    'LinkedInSearchService',
]
