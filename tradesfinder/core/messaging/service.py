import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tradesfinder.common.exceptions import AuthenticationRequiredError, NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.access.gate import AuthContext, Operation, conversation_resource, require_access
from tradesfinder.core.lookups import get_or_404, get_profile_for_user, get_user
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.conversation import Conversation, ConversationParticipant, Message
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.user import User

logger = get_logger("messaging.service")

MAX_MESSAGE_LENGTH = 5000


def _clean_content(content: str | None) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be {MAX_MESSAGE_LENGTH} characters or fewer")
    return content


class MessagingService:
    async def open_conversation(
        self,
        db: AsyncSession,
        participant_ids: list[uuid.UUID],
        sender_id: uuid.UUID,
        content: str | None,
        quote_request_id: uuid.UUID | None = None,
        job_application_id: uuid.UUID | None = None,
    ) -> Conversation:
        conversation = Conversation(
            quote_request_id=quote_request_id,
            job_application_id=job_application_id,
        )
        db.add(conversation)
        await db.flush()

        now = utcnow()
        for user_id in dict.fromkeys(participant_ids):
            db.add(
                ConversationParticipant(
                    conversation_id=conversation.id,
                    user_id=user_id,
                    last_read_at=now if user_id == sender_id else None,
                )
            )
        if content:
            db.add(Message(conversation_id=conversation.id, sender_id=sender_id, content=content))
        await db.flush()

        logger.info("Opened conversation %s with %d participants", conversation.id, len(participant_ids))
        return conversation

    async def find_between(
        self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID
    ) -> Conversation | None:
        mine = aliased(ConversationParticipant)
        theirs = aliased(ConversationParticipant)
        result = await db.execute(
            select(Conversation)
            .join(mine, mine.conversation_id == Conversation.id)
            .join(theirs, theirs.conversation_id == Conversation.id)
            .where(
                mine.user_id == user_id,
                theirs.user_id == other_id,
                mine.is_deleted.is_(False),
                theirs.is_deleted.is_(False),
                Conversation.is_deleted.is_(False),
            )
            .order_by(Conversation.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def start_conversation(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        recipient_id: uuid.UUID,
        initial_message: str | None = None,
    ) -> tuple[Conversation, bool]:
        """Open a direct conversation with another user, or reuse the existing one.

        Returns the conversation and whether it was created. A non-blank
        initial message is posted either way.
        """
        if ctx.is_anonymous:
            raise AuthenticationRequiredError()
        if recipient_id == ctx.user_id:
            raise ValidationError("You cannot start a conversation with yourself")

        recipient = await get_user(db, recipient_id)
        if recipient is None or not recipient.is_active:
            raise NotFoundError("Recipient")

        content = _clean_content(initial_message) if (initial_message or "").strip() else None

        conversation = await self.find_between(db, ctx.user_id, recipient.id)
        if conversation is None:
            conversation = await self.open_conversation(
                db,
                participant_ids=[ctx.user_id, recipient.id],
                sender_id=ctx.user_id,
                content=content,
            )
            return conversation, True

        if content:
            db.add(Message(conversation_id=conversation.id, sender_id=ctx.user_id, content=content))
            conversation.updated_at = utcnow()
            await db.flush()
        return conversation, False

    async def get_conversation(
        self, db: AsyncSession, ctx: AuthContext, conversation_id: uuid.UUID
    ) -> tuple[Conversation, User | None, TradesProfile | None]:
        """A conversation with the participant on the other side of it."""
        conversation = await self._load(db, ctx, conversation_id)
        others = [p for p in await self.participant_ids(db, conversation.id) if p != ctx.user_id]
        if not others:
            return conversation, None, None
        other = await get_user(db, others[0])
        return conversation, other, await get_profile_for_user(db, others[0])

    async def participant_ids(self, db: AsyncSession, conversation_id: uuid.UUID) -> list[uuid.UUID]:
        result = await db.execute(
            select(ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.is_deleted.is_(False),
            )
        )
        return list(result.scalars().all())

    async def _load(self, db: AsyncSession, ctx: AuthContext, conversation_id: uuid.UUID) -> Conversation:
        conversation = await get_or_404(db, Conversation, conversation_id, "Conversation")
        participants = await self.participant_ids(db, conversation.id)
        require_access(ctx, conversation_resource(conversation, participants), Operation.READ)
        return conversation

    async def list_conversations(self, db: AsyncSession, ctx: AuthContext) -> list[tuple[Conversation, int]]:
        """The caller's conversations, most recently active first, with unread counts."""
        result = await db.execute(
            select(Conversation, ConversationParticipant.last_read_at)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .where(
                ConversationParticipant.user_id == ctx.user_id,
                Conversation.is_deleted.is_(False),
            )
            .order_by(Conversation.updated_at.desc())
        )
        rows = result.all()

        conversations = []
        for conversation, last_read_at in rows:
            unread_q = select(func.count()).select_from(Message).where(
                Message.conversation_id == conversation.id,
                Message.sender_id != ctx.user_id,
                Message.is_deleted.is_(False),
            )
            if last_read_at is not None:
                unread_q = unread_q.where(Message.created_at > last_read_at)
            unread = (await db.execute(unread_q)).scalar() or 0
            conversations.append((conversation, unread))
        return conversations

    async def list_messages(self, db: AsyncSession, ctx: AuthContext, conversation_id: uuid.UUID) -> list[Message]:
        conversation = await self._load(db, ctx, conversation_id)

        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id, Message.is_deleted.is_(False))
            .order_by(Message.created_at.asc())
        )
        messages = list(result.scalars().all())

        participant = (
            await db.execute(
                select(ConversationParticipant).where(
                    ConversationParticipant.conversation_id == conversation.id,
                    ConversationParticipant.user_id == ctx.user_id,
                )
            )
        ).scalar_one_or_none()
        if participant:
            participant.last_read_at = utcnow()
            await db.flush()

        return messages

    async def post_message(
        self, db: AsyncSession, ctx: AuthContext, conversation_id: uuid.UUID, content: str
    ) -> Message:
        conversation = await get_or_404(db, Conversation, conversation_id, "Conversation")
        participants = await self.participant_ids(db, conversation.id)
        # Only participants may write, admins included
        require_access(ctx, conversation_resource(conversation, participants), Operation.MANAGE)

        content = _clean_content(content)

        message = Message(conversation_id=conversation.id, sender_id=ctx.user_id, content=content)
        db.add(message)
        conversation.updated_at = utcnow()
        await db.flush()
        await db.refresh(message)
        return message
