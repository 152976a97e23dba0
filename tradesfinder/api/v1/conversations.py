import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.common.exceptions import AuthenticationRequiredError
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.messaging.service import MessagingService

router = APIRouter(prefix="/conversations", tags=["Conversations"])

messaging = MessagingService()


class ConversationResponse(BaseModel):
    id: uuid.UUID
    quote_request_id: uuid.UUID | None
    job_application_id: uuid.UUID | None
    unread_count: int
    updated_at: datetime


class StartConversationRequest(BaseModel):
    recipient_id: uuid.UUID
    initial_message: str | None = None


class StartConversationResponse(BaseModel):
    id: uuid.UUID
    is_new: bool


class ParticipantSummary(BaseModel):
    id: uuid.UUID
    name: str
    role: str
    business_name: str | None = None
    slug: str | None = None


class ConversationDetailResponse(BaseModel):
    id: uuid.UUID
    quote_request_id: uuid.UUID | None
    job_application_id: uuid.UUID | None
    created_at: datetime
    other_participant: ParticipantSummary | None


class MessageRequest(BaseModel):
    content: str


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    if ctx.is_anonymous:
        raise AuthenticationRequiredError()
    rows = await messaging.list_conversations(db, ctx)
    return [
        ConversationResponse(
            id=c.id,
            quote_request_id=c.quote_request_id,
            job_application_id=c.job_application_id,
            unread_count=unread,
            updated_at=c.updated_at,
        )
        for c, unread in rows
    ]


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await messaging.list_messages(db, ctx, conversation_id)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    conversation_id: uuid.UUID,
    body: MessageRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await messaging.post_message(db, ctx, conversation_id, body.content)


@router.post("", response_model=StartConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    conversation, is_new = await messaging.start_conversation(db, ctx, body.recipient_id, body.initial_message)
    return StartConversationResponse(id=conversation.id, is_new=is_new)


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    conversation, other, profile = await messaging.get_conversation(db, ctx, conversation_id)
    other_participant = None
    if other is not None:
        other_participant = ParticipantSummary(
            id=other.id,
            name=other.name,
            role=other.role,
            business_name=profile.business_name if profile else None,
            slug=profile.slug if profile else None,
        )
    return ConversationDetailResponse(
        id=conversation.id,
        quote_request_id=conversation.quote_request_id,
        job_application_id=conversation.job_application_id,
        created_at=conversation.created_at,
        other_participant=other_participant,
    )
