# ipd_ledger/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All episode, ledger and audit tables inherit from this."""
    pass
