"""
Health routes — liveness, scheduler state and notification channel breakers.
"""
from flask import Blueprint, current_app, jsonify

from leadcrm.services.circuit_breaker import get_all_breakers

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Scheduler status plus circuit breaker health per notification channel."""
    scheduler = current_app.extensions['sweep_scheduler']
    return jsonify({
        'scheduler': scheduler.status(),
        'services': {name: cb.get_health() for name, cb in get_all_breakers().items()},
    })


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    return jsonify({'ok': True, 'service': breaker.get_health()})
