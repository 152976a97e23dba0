import enum


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    TRADESPERSON = "TRADESPERSON"
    ADMIN = "ADMIN"


class SubscriptionTier(str, enum.Enum):
    FREE = "FREE"
    PRO = "PRO"
    PREMIUM = "PREMIUM"


class Timeframe(str, enum.Enum):
    ASAP = "ASAP"
    ONE_WEEK = "1_WEEK"
    TWO_WEEKS = "2_WEEKS"
    ONE_MONTH = "1_MONTH"
    FLEXIBLE = "FLEXIBLE"


class JobStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class ApplicationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VIEWED = "VIEWED"
    SHORTLISTED = "SHORTLISTED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    WITHDRAWN = "WITHDRAWN"


class QuoteStatus(str, enum.Enum):
    PENDING = "PENDING"
    VIEWED = "VIEWED"
    RESPONDED = "RESPONDED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CLOSED = "CLOSED"


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"


class VerificationType(str, enum.Enum):
    IDENTITY = "IDENTITY"
    INSURANCE = "INSURANCE"
    PUBLIC_LIABILITY = "PUBLIC_LIABILITY"
    QUALIFICATION = "QUALIFICATION"
    GAS_SAFE = "GAS_SAFE"
    NICEIC = "NICEIC"
    TRUSTMARK = "TRUSTMARK"


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReportTargetType(str, enum.Enum):
    REVIEW = "REVIEW"
    PROFILE = "PROFILE"
    MESSAGE = "MESSAGE"


class ReportReason(str, enum.Enum):
    SPAM = "SPAM"
    FAKE_REVIEW = "FAKE_REVIEW"
    INAPPROPRIATE_CONTENT = "INAPPROPRIATE_CONTENT"
    HARASSMENT = "HARASSMENT"
    MISLEADING_INFO = "MISLEADING_INFO"
    OFFENSIVE_LANGUAGE = "OFFENSIVE_LANGUAGE"
    SCAM = "SCAM"
    OTHER = "OTHER"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class ContentAction(str, enum.Enum):
    NONE = "none"
    REJECT = "reject"
    FLAG = "flag"
    DEACTIVATE = "deactivate"
    DELETE = "delete"


class BadPayerStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PUBLISHED = "PUBLISHED"
    DISPUTED = "DISPUTED"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    REMOVED = "REMOVED"
    EXPIRED = "EXPIRED"


class DisputeStatus(str, enum.Enum):
    PENDING = "PENDING"
    UPHELD = "UPHELD"
    DISMISSED = "DISMISSED"
