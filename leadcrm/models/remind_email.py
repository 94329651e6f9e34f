"""
RemindEmail model — recipients of the overdue reminder email.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from leadcrm.database import Base


class RemindEmail(Base):
    __tablename__ = 'remind_email_list'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False, unique=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
