
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    ForeignKey,
)

from ipd_ledger.db.base import Base
from ipd_ledger.utils.timezone import utcnow


class AuditLog(Base):
    """
    Episode-level audit trail.
    Every ADMIT / STATUS / DISCHARGE writes here; rows are never changed.
    Ledger entries are their own audit trail and are not duplicated here.
    """
    __tablename__ = "audit_logs"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    actor_id = Column(Integer, nullable=False)
    actor_role = Column(String(40), nullable=False)
    action = Column(String(20), nullable=False)  # ADMIT / STATUS / DISCHARGE

    episode_id = Column(Integer,
                        ForeignKey("episodes.id"),
                        nullable=False,
                        index=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
