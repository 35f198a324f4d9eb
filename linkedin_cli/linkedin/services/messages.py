"""
LinkedIn messaging service.

Conversation listing and thread reading use the legacy Voyager messaging
REST endpoints. The messenger GraphQL listing (what the current web inbox
uses) needs a rotating query ID and goes through GraphQLQueryRunner.
"""
import logging
import re
from typing import Optional
from urllib.parse import quote

from linkedin_cli.schemas.entities import ConversationsPage, MessagesPage, Paging
from ..query_ids.runner import GraphQLQueryRunner
from ..utils.me import fetch_me
from ..utils.parsers import parse_conversation, parse_message, parse_messenger_conversations, read_elements
from .base import LinkedInServiceBase, read_paging

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 20
MAX_COUNT = 50
MESSENGER_OPERATION = "messengerConversations"
URN_IN_VARIABLES_RE = re.compile(r"urn:li:[^,()]+(?:\([^()]*\))?")


def encode_graphql_variables(variables: str) -> str:
    """Percent-encode the URNs inside a Rest.li variables tuple, leaving the tuple syntax intact."""
    return URN_IN_VARIABLES_RE.sub(lambda m: quote(m.group(0), safe=""), variables)


class LinkedInMessageService(LinkedInServiceBase):
    """Service for LinkedIn direct messaging reads."""

    async def list_conversations(self, start: int = 0, count: int = DEFAULT_COUNT) -> ConversationsPage:
        """
        List recent conversations, newest first.

        Raises:
            LinkedInApiError: If the request fails
        """
        count = min(count, MAX_COUNT)
        logger.info(f"[MESSAGES] Listing conversations start={start} count={count}")
        data = await self._make_request(
            f"/messaging/conversations?keyVersion=LEGACY_INBOX&start={start}&count={count}",
            debug_endpoint_type="conversations",
        )
        conversations = [parse_conversation(element) for element in read_elements(data)]
        return ConversationsPage(conversations=conversations, paging=read_paging(data, start, count))

    async def read_conversation(
        self,
        conversation_id: str,
        start: int = 0,
        count: int = DEFAULT_COUNT,
    ) -> MessagesPage:
        """
        Read the messages of one conversation.

        Args:
            conversation_id: Conversation id (trailing part of its URN)

        Raises:
            ValueError: If the conversation id is empty
            LinkedInApiError: If the request fails
        """
        conversation_id = (conversation_id or "").strip()
        if not conversation_id:
            raise ValueError("conversation_id is required")
        count = min(count, MAX_COUNT)

        logger.info(f"[MESSAGES] Reading conversation {conversation_id} start={start} count={count}")
        data = await self._make_request(
            f"/messaging/conversations/{conversation_id}/events?start={start}&count={count}",
            debug_endpoint_type="conversation_events",
        )
        messages = [parse_message(element, conversation_id) for element in read_elements(data)]
        return MessagesPage(
            conversation_id=conversation_id,
            messages=messages,
            paging=read_paging(data, start, count),
        )

    async def list_conversations_graphql(
        self,
        runner: Optional[GraphQLQueryRunner] = None,
        mailbox_urn: Optional[str] = None,
    ) -> ConversationsPage:
        """
        List conversations through the messenger GraphQL query.

        Variables and headers captured with the query ID are reused when
        present; otherwise the mailbox defaults to the caller's own profile.

        Raises:
            StaleQueryIdError: If the query ID is rejected even after a refresh
            LinkedInApiError: If the request fails otherwise
        """
        runner = runner or GraphQLQueryRunner(self.client, settings=self.settings)

        async def call(query_id: str) -> dict:
            snapshot = runner.cache.read_snapshot()
            captured_variables = (snapshot.variables or {}).get(MESSENGER_OPERATION) if snapshot else None
            if captured_variables and not mailbox_urn:
                variables = encode_graphql_variables(captured_variables)
            else:
                urn = mailbox_urn or (await fetch_me(self.client)).urn.replace("fs_miniProfile", "fsd_profile")
                variables = f"(mailboxUrn:{quote(urn, safe='')})"

            headers = {"Accept": "application/graphql"}
            if snapshot and snapshot.headers:
                headers.update(snapshot.headers)

            return await self._make_request(
                f"/voyagerMessagingGraphQL/graphql?queryId={query_id}&variables={variables}",
                headers=headers,
                debug_endpoint_type="messenger_conversations",
            )

        data = await runner.run(MESSENGER_OPERATION, call)
        conversations = parse_messenger_conversations(data)
        logger.info(f"[MESSAGES] Parsed {len(conversations)} conversations from messenger GraphQL")
        return ConversationsPage(
            conversations=conversations,
            paging=Paging(start=0, count=len(conversations), total=None),
        )
