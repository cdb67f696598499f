import os

# Settings are read at import time; point the app at SQLite before anything
# from ipd_ledger is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("HOSPITAL_CODE", "NH")
