"""
LinkedIn received-invitations service.
"""
import logging

from linkedin_cli.schemas.entities import InvitationsPage, Paging
from ..utils.invitation_parsers import parse_invitations_from_flagship_rsc
from ..utils.parsers import parse_invitation, read_elements
from .base import LinkedInServiceBase, read_paging

logger = logging.getLogger(__name__)

DEFAULT_INVITATIONS_COUNT = 100


class LinkedInInvitationService(LinkedInServiceBase):
    """Service for pending connection invitations."""

    async def list_invitations(self, start: int = 0, count: int = DEFAULT_INVITATIONS_COUNT) -> InvitationsPage:
        """
        List pending received invitations.

        JSON responses are read element by element; when LinkedIn answers with
        a flagship-web stream instead, the RSC invitation grammars are used.

        Raises:
            LinkedInApiError: If the request fails
        """
        path = f"/relationships/invitationViews?q=receivedInvitation&start={start}&count={count}"
        logger.info(f"[INVITATIONS] Fetching invitations start={start} count={count}")
        response = await self.client.request(path)

        try:
            data = response.json()
        except ValueError:
            invitations = parse_invitations_from_flagship_rsc(response.text)
            logger.info(f"[INVITATIONS] Parsed {len(invitations)} invitations from a streamed payload")
            return InvitationsPage(
                invitations=invitations,
                paging=Paging(start=start, count=len(invitations), total=len(invitations)),
            )

        data = data if isinstance(data, dict) else {}
        self._save_raw_response(path, data, "invitations")
        invitations = [parse_invitation(element) for element in read_elements(data)]
        paging = read_paging(data, start, count)
        total = paging.total or len(invitations)

        logger.info(f"[INVITATIONS] Parsed {len(invitations)} of {total} invitations")
        return InvitationsPage(
            invitations=invitations,
            paging=Paging(start=paging.start, count=len(invitations), total=total),
        )
