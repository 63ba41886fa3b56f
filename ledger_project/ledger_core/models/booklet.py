from django.core.exceptions import ValidationError
from django.db import models


def _empty_pages():
    return []


# ---------- Receipt Booklet ----------
class Booklet(models.Model):  # A numbered range of receipt slips

    booklet_no = models.CharField(max_length=50, unique=True)
    start_no = models.PositiveIntegerField()
    end_no = models.PositiveIntegerField()
    # Unused page numbers, kept sorted ascending with no duplicates
    pages_left = models.JSONField(default=_empty_pages, blank=True)
    # False once every page has been used
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["is_active"], name="booklet_active_idx")]
        ordering = ("start_no",)

    def __str__(self):
        return f"Booklet {self.booklet_no} ({self.start_no}-{self.end_no})"

    def clean(self):
        if self.start_no is None or self.end_no is None:
            return
        if self.end_no <= self.start_no:
            raise ValidationError("end_no must be greater than start_no")
        for page in self.pages_left or []:
            if not (self.start_no <= page <= self.end_no):
                raise ValidationError(f"Page {page} is outside booklet range.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    # ----- set-valued page pool -----
    # Callers hold the booklet row lock (select_for_update) around these.

    def has_page(self, number):
        return number in set(self.pages_left)

    def take_page(self, number):
        pages = set(self.pages_left)
        pages.discard(number)
        self.pages_left = sorted(pages)
        # Close the booklet when its pages are exhausted
        if not self.pages_left:
            self.is_active = False

    def return_page(self, number):
        pages = set(self.pages_left)
        pages.add(number)
        self.pages_left = sorted(pages)
        self.is_active = True

    def contains(self, number):
        return self.start_no <= number <= self.end_no
