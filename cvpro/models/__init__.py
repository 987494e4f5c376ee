from cvpro.models.user import User
from cvpro.models.ledger_account import LedgerAccount
from cvpro.models.credit_ledger import CreditLedgerEntry
from cvpro.models.saved_resume import SavedResume
from cvpro.models.audit_log import AuditLog
from cvpro.models.failed_job import FailedJob

__all__ = [
    "User",
    "LedgerAccount",
    "CreditLedgerEntry",
    "SavedResume",
    "AuditLog",
    "FailedJob",
]
