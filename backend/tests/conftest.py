"""Root conftest - shared test configuration."""

import os

# Ensure tests never reach a real database or create tables on import
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("ENVIRONMENT", "LOCAL")
os.environ.setdefault("LOG_FORMAT", "text")
