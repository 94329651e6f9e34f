"""
Overdue sweep — one batch recomputation of need_followup over all active leads.

Per run:
  1. Snapshot the remind config once.
  2. Per intention level: load active leads (enable_followup=1, end_followup=0),
     batch-fetch their latest journal entries, evaluate the engine in memory,
     then bulk-write need_followup for the overdue and not-overdue subsets.
  3. Reset need_followup on inactive leads that still carry it.
  4. Hand the overdue set, grouped by level, to the notification dispatcher.

Each level runs in its own session and transaction: a failing level is rolled
back and logged while the remaining levels proceed. Dispatch happens after all
writes are committed, so a delivery failure never undoes persisted flags.
run_sweep() never raises.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, update, or_

from leadcrm.config import INTENTION_LEVELS
from leadcrm.lifecycle import engine
from leadcrm.lifecycle.journal import latest_entries
from leadcrm.models.lead import Lead
from leadcrm.models.remind_email import RemindEmail
from leadcrm.services.notifications import OverdueNotice

logger = logging.getLogger('lifecycle.sweep')


@dataclass
class SweepResult:
    """Outcome of one sweep run."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    evaluated: int = 0
    overdue: List[OverdueNotice] = field(default_factory=list)
    failed_levels: Dict[str, str] = field(default_factory=dict)
    cleared_inactive: int = 0
    notified: Optional[bool] = None    # None = nothing to send
    channels: Dict[str, bool] = field(default_factory=dict)
    notify_error: Optional[str] = None
    error: Optional[str] = None

    @property
    def overdue_ids(self):
        return sorted(n.lead_id for n in self.overdue)

    def grouped(self) -> Dict[str, List[OverdueNotice]]:
        groups: Dict[str, List[OverdueNotice]] = {}
        for notice in self.overdue:
            groups.setdefault(notice.intention_level, []).append(notice)
        return groups

    def to_dict(self):
        return {
            'started_at': self.started_at.isoformat(sep=' '),
            'finished_at': self.finished_at.isoformat(sep=' ') if self.finished_at else None,
            'evaluated': self.evaluated,
            'overdue_count': len(self.overdue),
            'overdue_list': [n.to_dict() for n in self.overdue],
            'failed_levels': dict(self.failed_levels),
            'cleared_inactive': self.cleared_inactive,
            'notified': self.notified,
            'channels': dict(self.channels),
            'notify_error': self.notify_error,
            'error': self.error,
        }


def _notice(lead, latest, idle, threshold) -> OverdueNotice:
    return OverdueNotice(
        lead_id=lead.id,
        customer_label=lead.customer_nickname,
        contact_info=lead.contact_account,
        last_contact_time=engine.reference_time(lead, latest),
        last_contact_content=latest.content if latest is not None else None,
        responsible_person=lead.follow_up_person,
        intention_level=lead.intention_level,
        idle_days=idle,
        threshold_days=threshold,
    )


def _sweep_level(session, level, config, now, result):
    """Evaluate and persist one intention level inside the given session."""
    leads = session.execute(
        select(Lead).where(
            Lead.intention_level == level,
            Lead.enable_followup.is_(True),
            Lead.end_followup.is_(False),
        )
    ).scalars().all()
    if not leads:
        return []

    latest = latest_entries(session, [lead.id for lead in leads])
    threshold = engine.threshold_for(level, config)

    notices, overdue_ids, current_ids = [], [], []
    for lead in leads:
        entry = latest.get(lead.id)
        if engine.is_overdue(lead, entry, config, now=now):
            idle = engine.idle_days(engine.reference_time(lead, entry), now)
            notices.append(_notice(lead, entry, idle, threshold))
            overdue_ids.append(lead.id)
        else:
            current_ids.append(lead.id)

    # The tracking predicate is repeated so a lead ended concurrently keeps need_followup=0
    for ids, flag in ((overdue_ids, True), (current_ids, False)):
        if ids:
            session.execute(
                update(Lead)
                .where(
                    Lead.id.in_(ids),
                    Lead.enable_followup.is_(True),
                    Lead.end_followup.is_(False),
                )
                .values(need_followup=flag)
                .execution_options(synchronize_session=False)
            )
    session.commit()
    result.evaluated += len(leads)
    return notices


def _clear_inactive(session):
    res = session.execute(
        update(Lead)
        .where(
            Lead.need_followup.is_(True),
            or_(Lead.enable_followup.is_(False), Lead.end_followup.is_(True)),
        )
        .values(need_followup=False)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return res.rowcount or 0


def _active_levels(session_factory, configured):
    """Configured levels first, then any other level found on active leads."""
    session = session_factory()
    try:
        found = session.execute(
            select(Lead.intention_level).distinct().where(
                Lead.enable_followup.is_(True),
                Lead.end_followup.is_(False),
            )
        ).scalars().all()
    finally:
        session.close()
    extra = sorted(level for level in set(found) if level not in configured)
    if extra:
        logger.warning("Active leads with unconfigured intention levels %s use the default threshold", extra)
    return list(configured) + extra


def load_recipients(session) -> List[str]:
    return [row for row in session.execute(select(RemindEmail.email).order_by(RemindEmail.id)).scalars()]


def run_sweep(
    session_factory: Callable,
    config_store,
    dispatcher=None,
    now: Optional[datetime] = None,
    levels=None,
) -> SweepResult:
    """
    Run one full sweep. Always returns a SweepResult; never raises.

    `levels` restricts the run to the given intention levels. By default every
    level present on an active lead is swept, so leads with a level outside
    INTENTION_LEVELS are still evaluated against the default threshold.
    """
    now = now or datetime.now()
    result = SweepResult(started_at=now)
    try:
        config = config_store.snapshot()
        if levels is None:
            levels = _active_levels(session_factory, INTENTION_LEVELS)

        for level in levels:
            session = session_factory()
            try:
                result.overdue.extend(_sweep_level(session, level, config, now, result))
            except Exception as e:
                session.rollback()
                result.failed_levels[level] = str(e)
                logger.error("Sweep failed for intention level %s — skipped", level, exc_info=True)
            finally:
                session.close()

        session = session_factory()
        try:
            result.cleared_inactive = _clear_inactive(session)
        except Exception:
            session.rollback()
            logger.error("Failed to clear need_followup on inactive leads", exc_info=True)
        finally:
            session.close()

        if result.overdue and dispatcher is not None:
            _notify(session_factory, dispatcher, result)

    except Exception as e:
        result.overdue = []
        result.error = str(e)
        logger.error("Overdue sweep aborted", exc_info=True)

    result.finished_at = datetime.now()
    logger.info(
        "Sweep done: %d evaluated, %d overdue, %d failed levels, notified=%s",
        result.evaluated, len(result.overdue), len(result.failed_levels), result.notified,
    )
    return result


def _notify(session_factory, dispatcher, result):
    try:
        session = session_factory()
        try:
            recipients = load_recipients(session)
        finally:
            session.close()
        result.channels = dispatcher.dispatch(result.grouped(), recipients) or {}
        # No channel configured: nothing was delivered
        result.notified = True if result.channels else None
    except Exception as e:
        result.notified = False
        result.notify_error = str(e)
        logger.error("Overdue reminder dispatch failed (%d leads) — flags kept", len(result.overdue), exc_info=True)
