"""
Lifecycle commands — transactional transition hooks for the CRUD layer.

Every command runs inside the caller's session/transaction and never commits.
Validation happens before any write, so a rejected command leaves no trace.
Database errors propagate unchanged; the caller rolls back.

The lead row is loaded with SELECT ... FOR UPDATE so the journal append and
the flag update commit together. need_followup is always recomputed from the
latest journal entry, never derived from its previous value, which makes a
command racing with a sweep converge to the same answer.

current_cycle_completed is a display hint ("contact logged in the current
cycle"). It is reset on enable and set by every logged contact; the overdue
computation does not read it.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from leadcrm.lifecycle import engine
from leadcrm.lifecycle.errors import ValidationError, NotFoundError
from leadcrm.lifecycle.journal import Contact, append_entry, latest_entry
from leadcrm.models.follow_up import FollowUpRecord
from leadcrm.models.lead import Lead

logger = logging.getLogger('lifecycle.commands')

SYSTEM_METHOD = 'system'
ENDED_OUTCOME = 'ended'


def _lock_lead(session, lead_id: int) -> Lead:
    lead = session.get(Lead, lead_id, with_for_update=True)
    if lead is None:
        raise NotFoundError(f'Lead {lead_id} not found')
    return lead


def _recompute(session, lead: Lead, config_store, now: Optional[datetime]) -> bool:
    latest = latest_entry(session, lead.id)
    lead.need_followup = engine.is_overdue(lead, latest, config_store.snapshot(), now=now)
    return lead.need_followup


def register_lead(session, lead: Lead) -> Lead:
    """Attach a newly created lead with every lifecycle flag off."""
    lead.enable_followup = False
    lead.end_followup = False
    lead.end_followup_reason = None
    lead.current_cycle_completed = False
    lead.need_followup = False
    session.add(lead)
    session.flush()
    logger.info("Lead %s registered (intention=%s)", lead.id, lead.intention_level)
    return lead


def enable_tracking(session, lead_id: int, first_contact: Contact, config_store,
                    now: Optional[datetime] = None) -> Tuple[Lead, FollowUpRecord]:
    """
    Start overdue tracking for a lead, logging its first contact atomically.

    Rejected when no contact is supplied or when tracking is already on.
    Re-enabling a previously ended lead clears the end flag and reason.
    """
    if first_contact is None:
        raise ValidationError('Enabling follow-up requires an initial contact record', field='contact')
    first_contact.validate()

    lead = _lock_lead(session, lead_id)
    if lead.enable_followup:
        raise ValidationError(f'Follow-up is already enabled for lead {lead_id}', field='enable_followup')

    lead.enable_followup = True
    lead.end_followup = False
    lead.end_followup_reason = None
    lead.current_cycle_completed = False

    entry = append_entry(session, lead.id, first_contact, now=now)
    lead.current_cycle_completed = True
    _recompute(session, lead, config_store, now)

    logger.info("Lead %s: follow-up enabled (entry %s)", lead.id, entry.id)
    return lead, entry


def disable_tracking(session, lead_id: int, reason: str, contact: Optional[Contact] = None,
                     actor_id: Optional[int] = None,
                     now: Optional[datetime] = None) -> Tuple[Lead, FollowUpRecord]:
    """
    End follow-up for a lead permanently.

    A non-empty reason is mandatory. A terminal journal entry is always
    written: the supplied contact, or a system entry carrying the reason.
    """
    if reason is not None and not isinstance(reason, str):
        raise ValidationError('The end reason must be a string', field='end_followup_reason')
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('A reason is required to end follow-up', field='end_followup_reason')
    if contact is None:
        contact = Contact(
            method=SYSTEM_METHOD,
            content=f'Follow-up ended: {reason}',
            outcome=ENDED_OUTCOME,
            actor_id=actor_id,
        )
    contact.validate()

    lead = _lock_lead(session, lead_id)
    entry = append_entry(session, lead.id, contact, now=now)

    lead.end_followup = True
    lead.end_followup_reason = reason
    lead.enable_followup = False
    lead.current_cycle_completed = True
    lead.need_followup = False
    session.flush()

    logger.info("Lead %s: follow-up ended (%s)", lead.id, reason)
    return lead, entry


def record_follow_up(session, lead_id: int, contact: Contact, config_store,
                     now: Optional[datetime] = None) -> Tuple[Lead, FollowUpRecord]:
    """
    Log a contact event and refresh the lead's overdue flag immediately.

    This is the only path that clears need_followup ahead of the next sweep.
    """
    if contact is None:
        raise ValidationError('A contact record is required', field='contact')
    contact.validate()

    lead = _lock_lead(session, lead_id)
    entry = append_entry(session, lead.id, contact, now=now)
    lead.current_cycle_completed = True
    overdue = _recompute(session, lead, config_store, now)
    session.flush()

    logger.info("Lead %s: follow-up %s recorded, need_followup=%s", lead.id, entry.id, overdue)
    return lead, entry


def recompute_one(session, lead_id: int, config_store, now: Optional[datetime] = None) -> Lead:
    """Re-evaluate and persist need_followup for one lead. Idempotent."""
    lead = _lock_lead(session, lead_id)
    before = bool(lead.need_followup)
    after = _recompute(session, lead, config_store, now)
    session.flush()
    if before != after:
        logger.info("Lead %s: need_followup %s -> %s", lead.id, before, after)
    return lead
