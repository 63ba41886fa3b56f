from .account import Account
from .auditlog import AuditLog
from .booklet import Booklet
from .cheque import Cheque
from .donor import Donor
from .ledger_head import LedgerHead
from .monthly_balance import MonthlyLedgerBalance
from .transaction import Transaction, TransactionItem
