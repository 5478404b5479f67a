"""
Fyrk Analytics — Key/value row model.

Backs ``SqlCounterStore``: one row per rendered counter key. Counters are
decimal strings, visitor sets are JSON arrays; ``expires_at`` is NULL for
keys that never expire (page totals, cumulative visitor totals).
"""

from sqlalchemy import Column, String, Text, DateTime, Index, func

from analytics_api.database import Base


class KvEntry(Base):
    """One stored value, addressed by its rendered key."""
    __tablename__ = "kv_entries"

    key = Column(String(200), primary_key=True)

    value = Column(Text, nullable=False)

    # NULL = never expires
    expires_at = Column(DateTime(timezone=True), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_kv_entries_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<KvEntry {self.key}={self.value[:40]!r}>"
