from .account import AccountAdmin, LedgerHeadAdmin, MonthlyLedgerBalanceAdmin
from .actions import (close_next_period, mark_cheques_cancelled,
                      mark_cheques_cleared, reconcile_ledger_heads)
from .readonly import ReadOnlyAdmin
from .transaction import (AuditLogAdmin, BookletAdmin, ChequeAdmin,
                          DonorAdmin, TransactionAdmin)
