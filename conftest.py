"""Global pytest configuration."""

import os

# Importing saas_platform.app.main builds the module-level app from the
# environment, so point the central database at SQLite before any imports.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("REDIS_URL", None)
