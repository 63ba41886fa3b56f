import re

from django.core.exceptions import ValidationError
from django.db import models

PHONE_RE = re.compile(r"^[+]?[\d\s()-]{7,20}$")


class Donor(models.Model):  # Person or organisation a credit was received from
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    address = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return self.name

    def clean(self):
        if self.phone and not PHONE_RE.match(self.phone):
            raise ValidationError("Please provide a valid phone number")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
