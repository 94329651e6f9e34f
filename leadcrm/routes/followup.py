"""
Follow-up routes — HTTP adapter over the lifecycle commands and the journal.

Each request runs one command inside one transaction: commit on success,
rollback on any error.
"""
import logging
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from leadcrm.config import JOURNAL_PAGE_SIZE
from leadcrm.lifecycle import commands
from leadcrm.lifecycle.errors import ValidationError, NotFoundError
from leadcrm.lifecycle.journal import Contact, list_entries
from leadcrm.models.lead import Lead

logger = logging.getLogger('routes.followup')

bp = Blueprint('followup', __name__)


def _parse_time(value):
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('T', ' ').replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'Invalid follow-up time: {value}', field='occurred_at')
    # Journal times are naive local wall-clock values
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_contact(data, required=True):
    """Build a Contact from request JSON; None when optional and absent."""
    method = data.get('follow_up_method') or data.get('method')
    content = data.get('follow_up_content') or data.get('content')
    if not required and not method and not content:
        return None
    return Contact(
        method=method or '',
        content=content or '',
        outcome=data.get('follow_up_result') or data.get('outcome'),
        occurred_at=_parse_time(data.get('follow_up_time') or data.get('occurred_at')),
        actor_id=data.get('actor_id'),
    )


def _execute(action):
    """Run action(session) in a transaction and render the outcome."""
    session = current_app.extensions['session_factory']()
    try:
        payload = action(session)
        session.commit()
        return jsonify({'success': True, **payload}), 200
    except ValidationError as e:
        session.rollback()
        return jsonify({'success': False, 'message': str(e), 'field': e.field}), 400
    except NotFoundError as e:
        session.rollback()
        return jsonify({'success': False, 'message': str(e)}), 404
    except Exception as e:
        session.rollback()
        logger.error("Follow-up command failed", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
    finally:
        session.close()


def _config_store():
    return current_app.extensions['config_store']


@bp.route('/api/leads/<int:lead_id>/followup/enable', methods=['POST'])
def enable_followup(lead_id):
    data = request.get_json(silent=True) or {}

    def action(session):
        lead, entry = commands.enable_tracking(session, lead_id, _parse_contact(data), _config_store())
        return {'lead': lead.to_dict(), 'followUpId': entry.id}

    return _execute(action)


@bp.route('/api/leads/<int:lead_id>/followup/end', methods=['POST'])
def end_followup(lead_id):
    data = request.get_json(silent=True) or {}

    def action(session):
        lead, entry = commands.disable_tracking(
            session, lead_id,
            data.get('end_followup_reason') or data.get('reason'),
            contact=_parse_contact(data, required=False),
            actor_id=data.get('actor_id'),
        )
        return {'lead': lead.to_dict(), 'followUpId': entry.id}

    return _execute(action)


@bp.route('/api/leads/<int:lead_id>/followups', methods=['POST'])
def create_follow_up(lead_id):
    data = request.get_json(silent=True) or {}

    def action(session):
        lead, entry = commands.record_follow_up(session, lead_id, _parse_contact(data), _config_store())
        return {'lead': lead.to_dict(), 'followUpId': entry.id}

    return _execute(action)


@bp.route('/api/leads/<int:lead_id>/followup/recompute', methods=['POST'])
def recompute_followup(lead_id):
    def action(session):
        lead = commands.recompute_one(session, lead_id, _config_store())
        return {'lead': lead.to_dict()}

    return _execute(action)


@bp.route('/api/leads/<int:lead_id>/followups', methods=['GET'])
def get_follow_ups(lead_id):
    page = request.args.get('page', 1, type=int)
    page_size = request.args.get('page_size', JOURNAL_PAGE_SIZE, type=int)

    def action(session):
        if session.get(Lead, lead_id) is None:
            raise NotFoundError(f'Lead {lead_id} not found')
        return list_entries(session, lead_id, page=page, page_size=page_size)

    return _execute(action)
