"""
FollowUpRecord model — the append-only follow-up journal (follow_up_records).

One row per contact event. Rows are never updated; they only disappear when
the owning lead is deleted. "Latest entry" is max(occurred_at) per lead.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from leadcrm.database import Base


class FollowUpRecord(Base):
    __tablename__ = 'follow_up_records'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey('customer_leads.id', ondelete='CASCADE'), nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    method = Column(Text, nullable=False)        # phone / wechat / visit / system
    content = Column(Text, nullable=True)
    outcome = Column(Text, nullable=True)
    actor_id = Column(Integer, nullable=True)    # null for system entries
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_follow_up_records_lead_occurred', 'lead_id', 'occurred_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'occurred_at': self.occurred_at.isoformat(sep=' ') if self.occurred_at else None,
            'method': self.method,
            'content': self.content,
            'outcome': self.outcome,
            'actor_id': self.actor_id,
        }
