import os

# Settings are read at import time; point them at SQLite before fleetbook loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_DEBUG", "false")
