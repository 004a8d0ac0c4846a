from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.audit_log import AuditLog
from loanportal.models.chat import Chat, ChatMessage
from loanportal.models.dsa_activity import DSAActivity
from loanportal.models.dsa_review import DSAReview
from loanportal.models.loan_application import LoanApplication
from loanportal.models.loan_document import LoanDocument
from loanportal.models.status_history import StatusHistoryEntry
from loanportal.models.support_ticket import SupportTicket, TicketResponse
from loanportal.models.system_log import SystemLog
from loanportal.models.user import User

__all__ = [
    "ApplicationAssignment",
    "AuditLog",
    "Chat",
    "ChatMessage",
    "DSAActivity",
    "DSAReview",
    "LoanApplication",
    "LoanDocument",
    "StatusHistoryEntry",
    "SupportTicket",
    "TicketResponse",
    "SystemLog",
    "User",
]
