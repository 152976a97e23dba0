"""Visibility and authorization rules.

Every check takes an explicit :class:`AuthContext`; nothing here reads the
request. Rules are evaluated in order:

1. the ADMIN role passes admin operations (and may read anything),
2. owners pass READ and MANAGE on their own resources,
3. public resources pass READ for anyone, signed in or not,
4. everything else is denied.

A denied anonymous caller is asked to log in. A denied signed-in caller gets
a 404 for private resources they cannot see (so their existence does not
leak) and a 403 otherwise.
"""

import enum
import uuid

from pydantic import BaseModel

from tradesfinder.common.enums import BadPayerStatus, JobStatus, ReviewStatus, UserRole
from tradesfinder.common.exceptions import (
    AuthenticationRequiredError,
    AuthorizationError,
    NotFoundError,
)
from tradesfinder.core.workflows.machine import Actor


class Operation(str, enum.Enum):
    READ = "read"
    MANAGE = "manage"
    ADMIN = "admin"


class AuthContext(BaseModel, frozen=True):
    user_id: uuid.UUID | None = None
    role: UserRole | None = None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Resource(BaseModel, frozen=True):
    kind: str
    id: uuid.UUID | None = None
    owner_ids: frozenset[uuid.UUID] = frozenset()
    is_public: bool = False
    private: bool = True


def can_access(ctx: AuthContext, resource: Resource, op: Operation) -> bool:
    if ctx.is_admin and op in (Operation.ADMIN, Operation.READ):
        return True
    if op == Operation.ADMIN:
        return False
    if ctx.user_id is not None and ctx.user_id in resource.owner_ids:
        return True
    return op == Operation.READ and resource.is_public


def require_access(ctx: AuthContext, resource: Resource, op: Operation) -> None:
    if can_access(ctx, resource, op):
        return
    if ctx.is_anonymous:
        raise AuthenticationRequiredError()
    if resource.private and not resource.is_public:
        raise NotFoundError(resource.kind)
    raise AuthorizationError()


def require_role(ctx: AuthContext, *roles: UserRole) -> None:
    if ctx.is_anonymous:
        raise AuthenticationRequiredError()
    if ctx.role not in roles:
        raise AuthorizationError(
            f"This action requires one of the following roles: {', '.join(r.value for r in roles)}"
        )


def actor_for(
    ctx: AuthContext,
    customer_id: uuid.UUID | None = None,
    tradesperson_user_id: uuid.UUID | None = None,
) -> Actor:
    """Map the caller to their relationship with an entity for workflow checks."""
    if ctx.user_id is not None:
        if ctx.user_id == customer_id:
            return Actor.CUSTOMER
        if ctx.user_id == tradesperson_user_id:
            return Actor.TRADESPERSON
    if ctx.is_admin:
        return Actor.ADMIN
    return Actor.PUBLIC


# ---------- Resource builders ----------


def profile_resource(profile) -> Resource:
    return Resource(
        kind="Profile",
        id=profile.id,
        owner_ids=frozenset({profile.user_id}),
        is_public=profile.is_active and not profile.is_deleted,
    )


def job_resource(job, listing: bool = False) -> Resource:
    """``listing`` is the public job board view, where open jobs are readable."""
    return Resource(
        kind="Job",
        id=job.id,
        owner_ids=frozenset({job.customer_id}),
        is_public=listing and job.status == JobStatus.OPEN.value,
    )


def application_resource(application, job, profile) -> Resource:
    return Resource(
        kind="Application",
        id=application.id,
        owner_ids=frozenset({job.customer_id, profile.user_id}),
    )


def quote_resource(quote, profile) -> Resource:
    owners = {profile.user_id}
    if quote.customer_id is not None:
        owners.add(quote.customer_id)
    return Resource(kind="Quote request", id=quote.id, owner_ids=frozenset(owners))


def review_resource(review) -> Resource:
    return Resource(
        kind="Review",
        id=review.id,
        owner_ids=frozenset({review.author_id}),
        is_public=review.status == ReviewStatus.APPROVED.value,
    )


def bad_payer_resource(report, reporter_profile) -> Resource:
    return Resource(
        kind="Report",
        id=report.id,
        owner_ids=frozenset({reporter_profile.user_id}),
        is_public=report.status == BadPayerStatus.PUBLISHED.value and report.is_public,
    )


def conversation_resource(conversation, participant_ids) -> Resource:
    return Resource(
        kind="Conversation",
        id=conversation.id,
        owner_ids=frozenset(participant_ids),
    )
