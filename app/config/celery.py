"""
Celery configuration for the Django application.

Celery runs the background side of the payments engine:
- Redelivery of webhook events whose processing failed
- Periodic cleanup of stuck and old webhook events

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps, and periodic
schedules are stored in the database by django-celery-beat.

Usage:
    from payments.tasks import retry_failed_webhooks

    retry_failed_webhooks.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
