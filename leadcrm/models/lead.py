"""
Lead model — one row per sales lead (customer_leads).

Carries the follow-up lifecycle flags. need_followup is a materialized view
recomputed by the sweep and by the lifecycle commands; it may be stale by up
to one sweep interval and must never be hand-set by callers.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, Index
from sqlalchemy.sql import func

from leadcrm.database import Base


class Lead(Base):
    __tablename__ = 'customer_leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_nickname = Column(Text, nullable=False)
    source_platform = Column(Text, default='')
    source_account = Column(Text, default='')
    contact_account = Column(Text, default='')      # phone / chat handle
    contact_name = Column(Text, nullable=True)
    lead_time = Column(DateTime, nullable=False)    # contact baseline before any follow-up
    intention_level = Column(Text, nullable=False)  # High / Medium / Low
    follow_up_person = Column(Text, default='')     # display name of the responsible person
    current_follower = Column(Integer, nullable=True)

    # ── Lifecycle flags ─────────────────────────────────────────────────
    enable_followup = Column(Boolean, nullable=False, default=False)
    end_followup = Column(Boolean, nullable=False, default=False)
    end_followup_reason = Column(Text, nullable=True)
    current_cycle_completed = Column(Boolean, nullable=False, default=False)
    need_followup = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_customer_leads_tracking', 'intention_level', 'enable_followup', 'end_followup'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'customer_nickname': self.customer_nickname,
            'source_platform': self.source_platform,
            'source_account': self.source_account,
            'contact_account': self.contact_account,
            'contact_name': self.contact_name,
            'lead_time': self.lead_time.isoformat(sep=' ') if self.lead_time else None,
            'intention_level': self.intention_level,
            'follow_up_person': self.follow_up_person,
            'current_follower': self.current_follower,
            'enable_followup': bool(self.enable_followup),
            'end_followup': bool(self.end_followup),
            'end_followup_reason': self.end_followup_reason,
            'current_cycle_completed': bool(self.current_cycle_completed),
            'need_followup': bool(self.need_followup),
        }
