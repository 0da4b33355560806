"""Root conftest — shared test configuration."""

import os

os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("BACKEND_MODE", "sql")
os.environ.setdefault("LOG_FORMAT", "text")
