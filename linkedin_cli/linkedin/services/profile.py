"""
LinkedIn profile service: other members' profiles and the caller's own identity.
"""
import logging
from urllib.parse import quote

from linkedin_cli.core.exceptions import LinkedInError
from linkedin_cli.schemas.entities import NormalizedProfile, WhoAmI, profile_url_for
from ..utils.me import fetch_me, fetch_network_info
from ..utils.parsers import parse_profile
from ..utils.recipient import RecipientResolver
from .base import LinkedInServiceBase

logger = logging.getLogger(__name__)

FULL_PROFILE_DECORATION = "com.linkedin.voyager.dash.deco.identity.profile.FullProfile-76"


class LinkedInProfileService(LinkedInServiceBase):
    """Service for fetching LinkedIn profile data."""

    async def get_profile(self, identifier: str) -> NormalizedProfile:
        """
        Fetch a member's profile.

        Args:
            identifier: Username, profile URL or profile URN

        Raises:
            ValueError: If the identifier is empty or is not a profile
            LinkedInApiError: If the lookup or the profile request fails
        """
        if not identifier or not identifier.strip():
            raise ValueError("Invalid profile identifier. Provide a username, profile URL, or URN.")

        resolved = await RecipientResolver(self.client, self.settings).resolve(identifier)
        logger.info(f"[PROFILE] Fetching profile {resolved.urn}")
        data = await self._make_request(
            f"/identity/dash/profiles/{quote(resolved.urn, safe='')}?decorationId={FULL_PROFILE_DECORATION}",
            debug_endpoint_type="identity",
        )
        profile = parse_profile(data)
        if not profile.username and resolved.username:
            profile = profile.model_copy(update={
                "username": resolved.username,
                "profile_url": profile_url_for(resolved.username),
            })
        return profile

    async def whoami(self) -> WhoAmI:
        """
        The authenticated user's profile plus follower/connection counts.

        Network counts are omitted (None) when that request fails.

        Raises:
            LinkedInApiError: If /me fails
            ValueError: If /me returns no profile
        """
        profile = await fetch_me(self.client)
        network_info = None
        if profile.username:
            try:
                network_info = await fetch_network_info(self.client, profile.username)
            except LinkedInError as e:
                logger.warning(f"[PROFILE] Could not fetch network info for {profile.username}: {e}")
        return WhoAmI(profile=profile, network_info=network_info)
