import logging

from django.db import transaction
from django.db.models import Q

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Booklet, Transaction
from .balance import parse_id

logger = logging.getLogger(__name__)


# ----------------------------
# Receipt booklet allocator
# ----------------------------
def create_booklet(booklet_no, start_no, end_no) -> Booklet:
    """
    Register a new booklet. Its page pool is the whole range minus any
    receipt numbers that transactions already carry.
    """
    if not booklet_no:
        raise ValidationError("booklet_no is required")
    try:
        start_no, end_no = int(start_no), int(end_no)
    except (TypeError, ValueError):
        raise ValidationError("start_no and end_no must be whole numbers")
    if end_no <= start_no:
        raise ValidationError("end_no must be greater than start_no")

    with transaction.atomic():
        # Any overlap with an active booklet's range is rejected
        overlapping = Booklet.objects.select_for_update().filter(
            Q(is_active=True),
            Q(start_no__lte=end_no) & Q(end_no__gte=start_no),
        )
        if overlapping.exists():
            raise ConflictError("This range overlaps with an existing active booklet")

        used = set(
            Transaction.objects.filter(
                receipt_no__gte=start_no, receipt_no__lte=end_no
            ).values_list("receipt_no", flat=True)
        )
        pages = [n for n in range(start_no, end_no + 1) if n not in used]
        booklet = Booklet.objects.create(
            booklet_no=booklet_no,
            start_no=start_no,
            end_no=end_no,
            pages_left=pages,
            is_active=bool(pages),
        )
    logger.info("booklet %s created with %d free pages", booklet_no, len(pages))
    return booklet


def _receipt_in_use(receipt_no, exclude_transaction_id=None):
    qs = Transaction.objects.filter(receipt_no=receipt_no)
    if exclude_transaction_id is not None:
        qs = qs.exclude(pk=exclude_transaction_id)
    return qs.exists()


def reserve(booklet_id, requested_number=None) -> int:
    """
    Take a receipt number from the booklet: the requested one if it is still
    free, otherwise the smallest free page. Runs under the booklet row lock.
    """
    with transaction.atomic():
        try:
            booklet = Booklet.objects.select_for_update().get(pk=parse_id(booklet_id, "booklet_id"))
        except Booklet.DoesNotExist:
            raise NotFoundError(f"Booklet {booklet_id} not found")

        if not booklet.is_active or not booklet.pages_left:
            raise ConflictError(f"Booklet {booklet.booklet_no} is exhausted")

        if requested_number not in (None, ""):
            number = parse_id(requested_number, "receipt_no")
            if not booklet.has_page(number) or _receipt_in_use(number):
                raise ConflictError(
                    f"Receipt number {number} is not available in booklet {booklet.booklet_no}"
                )
        else:
            number = next((n for n in booklet.pages_left if not _receipt_in_use(n)), None)
            if number is None:
                raise ConflictError(f"Booklet {booklet.booklet_no} is exhausted")

        booklet.take_page(number)
        booklet.save(update_fields=["pages_left", "is_active"])
    return number


def release(booklet_id, receipt_no, exclude_transaction_id=None):
    """
    Put a receipt number back into its booklet's pool.
    No-op when another transaction still claims it, or it falls outside the range.
    """
    if receipt_no is None:
        return
    with transaction.atomic():
        booklet = Booklet.objects.select_for_update().filter(pk=booklet_id).first()
        if booklet is None or not booklet.contains(receipt_no):
            return
        if _receipt_in_use(receipt_no, exclude_transaction_id=exclude_transaction_id):
            return
        booklet.return_page(receipt_no)
        booklet.save(update_fields=["pages_left", "is_active"])
