"""
Remind config routes — per-level thresholds, recipient list, manual sweep.
"""
import logging
import re

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from leadcrm.config import INTENTION_LEVELS
from leadcrm.lifecycle.errors import ConfigMissingError
from leadcrm.models.remind_config import FollowupRemindConfig
from leadcrm.models.remind_email import RemindEmail

logger = logging.getLogger('routes.remind_config')

bp = Blueprint('remind_config', __name__)

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _session():
    return current_app.extensions['session_factory']()


def update_interval_days(session, level, interval_days):
    """Set interval_days for an existing level row; the caller commits."""
    row = session.query(FollowupRemindConfig).filter_by(intention_level=level).first()
    if row is None:
        raise ConfigMissingError(level)
    row.interval_days = interval_days
    session.flush()
    return row


# ── Thresholds ───────────────────────────────────────────────────────────────

@bp.route('/api/followup-remind-config')
def list_configs():
    session = _session()
    try:
        rows = session.query(FollowupRemindConfig).order_by(FollowupRemindConfig.id).all()
        return jsonify({'success': True, 'list': [row.to_dict() for row in rows]})
    except Exception as e:
        logger.error("Failed to list remind config", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/followup-remind-config/<level>', methods=['PUT'])
def update_config(level):
    if level not in INTENTION_LEVELS:
        return jsonify({'success': False, 'message': f'Unknown intention level: {level}'}), 400

    data = request.get_json(silent=True) or {}
    raw = data.get('interval_days')
    try:
        interval_days = int(raw)
    except (TypeError, ValueError):
        interval_days = 0
    if isinstance(raw, bool) or interval_days < 1:
        return jsonify({'success': False, 'message': 'interval_days must be a positive integer'}), 400

    session = _session()
    try:
        row = update_interval_days(session, level, interval_days)
        session.commit()
        current_app.extensions['config_store'].invalidate()
        logger.info("Remind interval for %s set to %d days", level, interval_days)
        return jsonify({'success': True, 'config': row.to_dict()})
    except ConfigMissingError as e:
        session.rollback()
        return jsonify({'success': False, 'message': str(e)}), 404
    except Exception as e:
        session.rollback()
        logger.error("Failed to update remind config for %s", level, exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/followup-remind-config/trigger', methods=['POST'])
def trigger_sweep():
    """Run an overdue sweep now, unless the scheduler is already running one."""
    result = current_app.extensions['sweep_scheduler'].trigger()
    if result is None:
        return jsonify({'success': False, 'message': 'An overdue sweep is already running'}), 409
    return jsonify({
        'success': True,
        'message': f'Sweep finished, {len(result.overdue)} overdue leads',
        'data': result.to_dict(),
    })


# ── Recipients ───────────────────────────────────────────────────────────────

@bp.route('/api/remind-emails')
def list_emails():
    session = _session()
    try:
        rows = session.query(RemindEmail).order_by(RemindEmail.id).all()
        return jsonify({'success': True, 'list': [{'id': r.id, 'email': r.email} for r in rows]})
    finally:
        session.close()


@bp.route('/api/remind-emails', methods=['POST'])
def add_email():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    email = email.strip() if isinstance(email, str) else ''
    if not _EMAIL_RE.match(email):
        return jsonify({'success': False, 'message': 'A valid email is required'}), 400

    session = _session()
    try:
        if session.query(RemindEmail.id).filter_by(email=email).first():
            return jsonify({'success': False, 'message': 'Email already exists'}), 400
        record = RemindEmail(email=email)
        session.add(record)
        session.commit()
        return jsonify({'success': True, 'id': record.id})
    except IntegrityError:
        session.rollback()
        return jsonify({'success': False, 'message': 'Email already exists'}), 400
    finally:
        session.close()


@bp.route('/api/remind-emails/<int:email_id>', methods=['DELETE'])
def delete_email(email_id):
    session = _session()
    try:
        deleted = session.query(RemindEmail).filter_by(id=email_id).delete()
        session.commit()
        if not deleted:
            return jsonify({'success': False, 'message': 'Email not found'}), 404
        return jsonify({'success': True})
    finally:
        session.close()
