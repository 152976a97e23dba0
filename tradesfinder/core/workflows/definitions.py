from tradesfinder.common.enums import (
    ApplicationStatus,
    BadPayerStatus,
    DisputeStatus,
    JobStatus,
    QuoteStatus,
    ReportStatus,
    ReviewStatus,
    VerificationStatus,
)
from tradesfinder.core.workflows.machine import Actor, Workflow, transition

JOB_WORKFLOW = Workflow(
    "Job",
    JobStatus,
    [
        transition(
            "close",
            [JobStatus.OPEN, JobStatus.IN_PROGRESS, JobStatus.EXPIRED],
            JobStatus.CLOSED,
            Actor.CUSTOMER,
        ),
        # Accepting an application starts the job
        transition("start", [JobStatus.OPEN], JobStatus.IN_PROGRESS, Actor.SYSTEM),
        transition("complete", [JobStatus.IN_PROGRESS], JobStatus.COMPLETED, Actor.CUSTOMER),
        transition("expire", [JobStatus.OPEN], JobStatus.EXPIRED, Actor.SYSTEM),
    ],
)

_OPEN_APPLICATION = [ApplicationStatus.PENDING, ApplicationStatus.VIEWED, ApplicationStatus.SHORTLISTED]

APPLICATION_WORKFLOW = Workflow(
    "JobApplication",
    ApplicationStatus,
    [
        transition("view", [ApplicationStatus.PENDING], ApplicationStatus.VIEWED, Actor.SYSTEM),
        transition(
            "shortlist",
            [ApplicationStatus.PENDING, ApplicationStatus.VIEWED],
            ApplicationStatus.SHORTLISTED,
            Actor.CUSTOMER,
        ),
        transition("accept", _OPEN_APPLICATION, ApplicationStatus.ACCEPTED, Actor.CUSTOMER),
        transition("decline", _OPEN_APPLICATION, ApplicationStatus.DECLINED, Actor.CUSTOMER),
        transition("withdraw", _OPEN_APPLICATION, ApplicationStatus.WITHDRAWN, Actor.TRADESPERSON),
    ],
)

QUOTE_WORKFLOW = Workflow(
    "QuoteRequest",
    QuoteStatus,
    [
        transition("view", [QuoteStatus.PENDING], QuoteStatus.VIEWED, Actor.SYSTEM),
        transition(
            "respond", [QuoteStatus.PENDING, QuoteStatus.VIEWED], QuoteStatus.RESPONDED, Actor.TRADESPERSON
        ),
        transition("close", [QuoteStatus.PENDING, QuoteStatus.VIEWED], QuoteStatus.CLOSED, Actor.TRADESPERSON),
        transition("accept", [QuoteStatus.RESPONDED], QuoteStatus.ACCEPTED, Actor.CUSTOMER),
        transition("decline", [QuoteStatus.RESPONDED], QuoteStatus.DECLINED, Actor.CUSTOMER),
    ],
)

# Admins may re-moderate between APPROVED and REJECTED
REVIEW_WORKFLOW = Workflow(
    "Review",
    ReviewStatus,
    [
        transition(
            "approve",
            [ReviewStatus.PENDING, ReviewStatus.FLAGGED, ReviewStatus.REJECTED],
            ReviewStatus.APPROVED,
            Actor.ADMIN,
        ),
        transition(
            "reject",
            [ReviewStatus.PENDING, ReviewStatus.FLAGGED, ReviewStatus.APPROVED],
            ReviewStatus.REJECTED,
            Actor.ADMIN,
        ),
        transition(
            "flag",
            [ReviewStatus.PENDING, ReviewStatus.APPROVED],
            ReviewStatus.FLAGGED,
            Actor.ADMIN,
            Actor.SYSTEM,
        ),
    ],
)

VERIFICATION_WORKFLOW = Workflow(
    "Verification",
    VerificationStatus,
    [
        transition("approve", [VerificationStatus.PENDING], VerificationStatus.APPROVED, Actor.ADMIN),
        transition("reject", [VerificationStatus.PENDING], VerificationStatus.REJECTED, Actor.ADMIN),
    ],
)

_OPEN_REPORT = [ReportStatus.PENDING, ReportStatus.INVESTIGATING]

REPORT_WORKFLOW = Workflow(
    "Report",
    ReportStatus,
    [
        transition("investigate", [ReportStatus.PENDING], ReportStatus.INVESTIGATING, Actor.ADMIN),
        transition("resolve", _OPEN_REPORT, ReportStatus.RESOLVED, Actor.ADMIN),
        transition("dismiss", _OPEN_REPORT, ReportStatus.DISMISSED, Actor.ADMIN),
    ],
)

DISPUTE_WORKFLOW = Workflow(
    "BadPayerDispute",
    DisputeStatus,
    [
        transition("uphold", [DisputeStatus.PENDING], DisputeStatus.UPHELD, Actor.ADMIN),
        transition("dismiss", [DisputeStatus.PENDING], DisputeStatus.DISMISSED, Actor.ADMIN),
    ],
)

BAD_PAYER_WORKFLOW = Workflow(
    "BadPayerReport",
    BadPayerStatus,
    [
        transition("submit", [BadPayerStatus.DRAFT], BadPayerStatus.PENDING_REVIEW, Actor.TRADESPERSON),
        transition("publish", [BadPayerStatus.PENDING_REVIEW], BadPayerStatus.PUBLISHED, Actor.ADMIN),
        transition("reject", [BadPayerStatus.PENDING_REVIEW], BadPayerStatus.REJECTED, Actor.ADMIN),
        transition(
            "dispute",
            [BadPayerStatus.PUBLISHED, BadPayerStatus.DISPUTED],
            BadPayerStatus.DISPUTED,
            Actor.PUBLIC,
        ),
        transition(
            "reinstate", [BadPayerStatus.DISPUTED], BadPayerStatus.PUBLISHED, Actor.ADMIN, Actor.SYSTEM
        ),
        transition("resolve", [BadPayerStatus.DISPUTED], BadPayerStatus.RESOLVED, Actor.ADMIN),
        transition(
            "remove",
            [BadPayerStatus.PUBLISHED, BadPayerStatus.DISPUTED],
            BadPayerStatus.REMOVED,
            Actor.ADMIN,
            Actor.SYSTEM,
        ),
        transition("expire", [BadPayerStatus.PUBLISHED], BadPayerStatus.EXPIRED, Actor.SYSTEM),
    ],
)
