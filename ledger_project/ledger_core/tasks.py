import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def reconcile_balances_task():
    # import services lazily to avoid circular imports at module import time
    from .services.reconciliation import reconcile_balances

    return reconcile_balances().as_dict()


@shared_task
def month_end_closure_task(today=None):
    """Close the current calendar month for every account that is due for it."""
    from .exceptions import LedgerError
    from .models import Account
    from .services.balance import month_index, previous_month
    from .services.periods import close_accounting_period, coerce_date

    today = coerce_date(today, "today") if today else timezone.localdate()
    month, year = today.month, today.year

    closed, skipped = [], []
    for account in Account.objects.order_by("pk"):
        last = account.last_closed_date
        # already through this month, or a month is still missing before it
        if last and month_index(last.month, last.year) >= month_index(month, year):
            skipped.append(account.pk)
            continue
        if last and (last.month, last.year) != previous_month(month, year):
            logger.warning(
                "month-end closure skipped for account %s: closed through %s, cannot close %02d/%d",
                account.pk, last, month, year,
            )
            skipped.append(account.pk)
            continue
        try:
            close_accounting_period(month, year, account.pk)
        except LedgerError:
            logger.exception("month-end closure failed for account %s", account.pk)
            skipped.append(account.pk)
            continue
        closed.append(account.pk)
    return {"month": month, "year": year, "closed": closed, "skipped": skipped}


@shared_task
def auto_close_previous_month_task(today=None):
    """
    Runs early on the 1st: close last month for each account whose
    last_closed_date is behind it and for which it is the next month in line.
    """
    from .exceptions import LedgerError
    from .models import Account
    from .services.balance import month_bounds, month_index, previous_month
    from .services.periods import close_accounting_period, coerce_date

    today = coerce_date(today, "today") if today else timezone.localdate()
    month, year = previous_month(today.month, today.year)
    _, month_end = month_bounds(month, year)

    closed, skipped = [], []
    for account in Account.objects.order_by("pk"):
        last = account.last_closed_date
        if last and last >= month_end:
            continue  # nothing to do
        if last and month_index(last.month, last.year) != month_index(month, year) - 1:
            logger.warning(
                "account %s closed through %s; %02d/%d is not next in sequence, skipping",
                account.pk, last, month, year,
            )
            skipped.append(account.pk)
            continue
        try:
            close_accounting_period(month, year, account.pk)
        except LedgerError:
            logger.exception("auto-close of %02d/%d failed for account %s", month, year, account.pk)
            skipped.append(account.pk)
            continue
        closed.append(account.pk)

    logger.info("auto-close %02d/%d: %d closed, %d skipped", month, year, len(closed), len(skipped))
    return {"month": month, "year": year, "closed": closed, "skipped": skipped}


@shared_task
def recalculate_ledger_head_task(account_id, ledger_head_id, from_date):
    from .services.recalculation import recalculate

    result = recalculate(account_id, ledger_head_id, from_date)
    return {
        "ledger_head_id": result.ledger_head_id,
        "old_balance": str(result.old_balance),
        "new_balance": str(result.new_balance),
        "months": len(result.months),
    }
