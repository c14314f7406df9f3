"""
Background Job Queue
Dramatiq-based async task processing
"""
from app.services.jobs.broker import broker
from app.services.jobs.tasks import sync_books_delta_task, sync_books_backfill_task

__all__ = ["broker", "sync_books_delta_task", "sync_books_backfill_task"]
