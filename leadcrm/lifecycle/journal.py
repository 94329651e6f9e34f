"""
Follow-up journal access — append, latest entry, batched latest, paging.

The journal is append-only: nothing here updates or deletes a row.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, and_

from leadcrm.config import JOURNAL_PAGE_SIZE, JOURNAL_MAX_PAGE_SIZE
from leadcrm.lifecycle.errors import ValidationError
from leadcrm.models.follow_up import FollowUpRecord

# Keeps IN (...) lists well under driver parameter limits
_BATCH_SIZE = 500


@dataclass
class Contact:
    """A follow-up contact event as supplied by the caller."""
    method: str
    content: str
    outcome: Optional[str] = None
    occurred_at: Optional[datetime] = None
    actor_id: Optional[int] = None

    def validate(self):
        for name, label in (('method', 'Follow-up method'), ('content', 'Follow-up content')):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f'{label} must be a string', field=name)
            if not (value or '').strip():
                raise ValidationError(f'{label} is required', field=name)
        if self.outcome is not None and not isinstance(self.outcome, str):
            raise ValidationError('Follow-up result must be a string', field='outcome')
        if self.actor_id is not None and (isinstance(self.actor_id, bool) or not isinstance(self.actor_id, int)):
            raise ValidationError('actor_id must be an integer', field='actor_id')


def append_entry(session, lead_id: int, contact: Contact, now: Optional[datetime] = None) -> FollowUpRecord:
    """Add a journal row for lead_id and flush it so it is visible in this transaction."""
    entry = FollowUpRecord(
        lead_id=lead_id,
        occurred_at=contact.occurred_at or now or datetime.now(),
        method=contact.method.strip(),
        content=contact.content,
        outcome=contact.outcome,
        actor_id=contact.actor_id,
    )
    session.add(entry)
    session.flush()
    return entry


def latest_entry(session, lead_id: int) -> Optional[FollowUpRecord]:
    """Most recent entry for one lead (ties broken by id)."""
    return session.execute(
        select(FollowUpRecord)
        .where(FollowUpRecord.lead_id == lead_id)
        .order_by(FollowUpRecord.occurred_at.desc(), FollowUpRecord.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def latest_entries(session, lead_ids: Iterable[int]) -> Dict[int, FollowUpRecord]:
    """
    Latest entry per lead for many leads at once.

    One grouped query per batch of ids rather than one query per lead.
    Leads with no journal rows are absent from the result.
    """
    ids = list(dict.fromkeys(lead_ids))
    result: Dict[int, FollowUpRecord] = {}
    for start in range(0, len(ids), _BATCH_SIZE):
        chunk = ids[start:start + _BATCH_SIZE]
        newest = (
            select(
                FollowUpRecord.lead_id.label('lead_id'),
                func.max(FollowUpRecord.occurred_at).label('occurred_at'),
            )
            .where(FollowUpRecord.lead_id.in_(chunk))
            .group_by(FollowUpRecord.lead_id)
            .subquery()
        )
        rows = session.execute(
            select(FollowUpRecord).join(
                newest,
                and_(
                    FollowUpRecord.lead_id == newest.c.lead_id,
                    FollowUpRecord.occurred_at == newest.c.occurred_at,
                ),
            )
        ).scalars()
        for entry in rows:
            current = result.get(entry.lead_id)
            if current is None or entry.id > current.id:
                result[entry.lead_id] = entry
    return result


def list_entries(session, lead_id: int, page: int = 1, page_size: int = JOURNAL_PAGE_SIZE) -> dict:
    """Paged journal for one lead, newest first."""
    if page < 1 or page_size < 1 or page_size > JOURNAL_MAX_PAGE_SIZE:
        raise ValidationError(
            f'page must be >= 1 and page_size between 1 and {JOURNAL_MAX_PAGE_SIZE}',
            field='page_size',
        )
    total = session.execute(
        select(func.count()).select_from(FollowUpRecord).where(FollowUpRecord.lead_id == lead_id)
    ).scalar_one()
    rows: List[FollowUpRecord] = session.execute(
        select(FollowUpRecord)
        .where(FollowUpRecord.lead_id == lead_id)
        .order_by(FollowUpRecord.occurred_at.desc(), FollowUpRecord.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars().all()
    return {
        'lead_id': lead_id,
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': (total + page_size - 1) // page_size,
        'list': [row.to_dict() for row in rows],
    }
