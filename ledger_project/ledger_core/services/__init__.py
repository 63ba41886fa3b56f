# Public operations of the ledger engine (consumed by the HTTP layer,
# Celery tasks and management commands)
from .audit_helper import log_action
from .balance import monthly_activity, opening_balance
from .booklets import create_booklet, release, reserve
from .cheques import cancel_cheque, clear_cheque
from .periods import (close_accounting_period, ensure_current_period_open,
                      get_open_period_for_account, open_accounting_period,
                      reopen_period, validate_transaction_period)
from .posting import (post, post_credit, post_debit, update_transaction,
                      void_transaction)
from .recalculation import recalculate, recalculate_account
from .reconciliation import reconcile_balances
from .snapshots import upsert as upsert_snapshot
