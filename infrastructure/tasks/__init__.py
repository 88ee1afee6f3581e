"""Celery task infrastructure package.

Importing this module wires together the configured Celery app; the beat
schedule drives periodic device maintenance.
"""
from .config.celery import celery_app

__all__ = ["celery_app"]
