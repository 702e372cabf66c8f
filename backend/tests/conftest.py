"""Test environment defaults.

Settings are read at import time, so required variables are filled in here
before any ``app`` module is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-moderation-tests")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-api-key")
