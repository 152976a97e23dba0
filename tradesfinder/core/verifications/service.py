import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import VerificationStatus, VerificationType
from tradesfinder.common.exceptions import ConflictError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.entitlements.limits import LimitKind, ensure_within_cap
from tradesfinder.core.lookups import get_or_404, require_own_profile
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import VERIFICATION_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.verification import Verification

logger = get_logger("verifications.service")

MIN_REJECTION_REASON_LENGTH = 10
ACTIVE_STATUSES = (VerificationStatus.PENDING.value, VerificationStatus.APPROVED.value)


class VerificationService:
    async def submit(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        verification_type: str,
        document_url: str,
        notes: str | None = None,
    ) -> Verification:
        if verification_type not in VerificationType.__members__:
            raise ValidationError("Invalid verification type")
        document_url = (document_url or "").strip()
        if not document_url:
            raise ValidationError("Document URL is required")

        profile = await require_own_profile(db, ctx)

        duplicate = await db.execute(
            select(Verification.id).where(
                Verification.profile_id == profile.id,
                Verification.type == verification_type,
                Verification.status.in_(ACTIVE_STATUSES),
                Verification.is_deleted.is_(False),
            )
        )
        if duplicate.scalars().first():
            raise ConflictError("You already have a verification of this type")

        # Pending requests count against the badge cap as well as approved ones
        held = (
            await db.execute(
                select(func.count()).select_from(Verification).where(
                    Verification.profile_id == profile.id,
                    Verification.status.in_(ACTIVE_STATUSES),
                    Verification.is_deleted.is_(False),
                )
            )
        ).scalar() or 0
        ensure_within_cap(profile.subscription_tier, LimitKind.VERIFICATION_BADGES, held, "verification badges")

        verification = Verification(
            profile_id=profile.id,
            type=verification_type,
            document_url=document_url,
            notes=notes,
            status=VerificationStatus.PENDING.value,
        )
        db.add(verification)
        await db.flush()
        await db.refresh(verification)

        logger.info("Verification %s (%s) requested by profile %s", verification.id, verification_type, profile.id)
        return verification

    async def list_own(self, db: AsyncSession, ctx: AuthContext) -> list[Verification]:
        profile = await require_own_profile(db, ctx)
        result = await db.execute(
            select(Verification)
            .where(Verification.profile_id == profile.id, Verification.is_deleted.is_(False))
            .order_by(Verification.created_at.desc())
        )
        return list(result.scalars().all())

    async def moderate(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        verification_id: uuid.UUID,
        action: str,
        notes: str | None = None,
        reason: str | None = None,
        expires_at: datetime | None = None,
    ) -> Verification:
        verification = await get_or_404(db, Verification, verification_id, "Verification")

        reason = (reason or "").strip()
        if action == "reject" and len(reason) < MIN_REJECTION_REASON_LENGTH:
            raise ValidationError(
                f"A rejection reason of at least {MIN_REJECTION_REASON_LENGTH} characters is required"
            )

        await apply_transition(db, VERIFICATION_WORKFLOW, verification, action, Actor.ADMIN, ctx.user_id)

        if verification.status == VerificationStatus.APPROVED.value:
            verification.verified_at = utcnow()
            verification.verified_by = ctx.user_id
            verification.expires_at = expires_at
            if notes:
                verification.notes = notes

            # First approved badge marks the profile verified
            profile = await get_or_404(db, TradesProfile, verification.profile_id, "Trades profile")
            if not profile.is_verified:
                profile.is_verified = True
                profile.verified_at = utcnow()
                logger.info("Profile %s is now verified", profile.id)
        else:
            verification.notes = reason

        await db.flush()
        await db.refresh(verification)
        return verification
