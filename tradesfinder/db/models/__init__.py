from tradesfinder.db.models.audit import AuditLog
from tradesfinder.db.models.bad_payer import BadPayerDispute, BadPayerReport
from tradesfinder.db.models.conversation import Conversation, ConversationParticipant, Message
from tradesfinder.db.models.job import Job, JobApplication
from tradesfinder.db.models.profile import PortfolioItem, Trade, TradesProfile, profile_trades
from tradesfinder.db.models.quote import QuoteRequest
from tradesfinder.db.models.report import Report
from tradesfinder.db.models.review import Review
from tradesfinder.db.models.user import User
from tradesfinder.db.models.verification import Verification

__all__ = [
    "AuditLog",
    "BadPayerDispute",
    "BadPayerReport",
    "Conversation",
    "ConversationParticipant",
    "Job",
    "JobApplication",
    "Message",
    "PortfolioItem",
    "QuoteRequest",
    "Report",
    "Review",
    "Trade",
    "TradesProfile",
    "User",
    "Verification",
    "profile_trades",
]
