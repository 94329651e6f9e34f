"""
FollowupRemindConfig model — max days without contact, per intention level.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from leadcrm.database import Base


class FollowupRemindConfig(Base):
    __tablename__ = 'followup_remind_config'

    id = Column(Integer, primary_key=True, autoincrement=True)
    intention_level = Column(Text, nullable=False, unique=True)
    interval_days = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'intention_level': self.intention_level,
            'interval_days': self.interval_days,
        }
