# Celery instance is defined in ledger_project/celery.py
# It points the task queue at the Django settings of this project
from .celery import celery_app

# 'from ledger_project import *', only exports celery_app
__all__ = ("celery_app",)

""" When you run Celery workers, "celery -A ledger_project worker -l info"
    (and "celery -A ledger_project beat -l info" for the scheduled jobs)
    Import ledger_project/__init__.py →
    which exposes celery_app →  now Celery knows what to run. """
