"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App fixtures live in each app's conftest.py (payments/conftest.py and
per-package tests/conftest.py).
"""

import os
import sys
from pathlib import Path

# Django apps live under app/ (flat layout, no src/)
sys.path.insert(0, str(Path(__file__).resolve().parent / "app"))

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Local test runs default to SQLite; CI exports DATABASE_URL for PostgreSQL
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
