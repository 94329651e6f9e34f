"""
Flask application factory.

Wires the follow-up lifecycle core: session factory, remind-config cache,
notification dispatcher and the overdue sweep scheduler, all kept on
app.extensions so tests can inject their own.
"""
import os
from functools import partial

from flask import Flask


def create_app(session_factory=None, config_store=None, dispatcher=None, redis_client=None):
    """Create and configure the Flask application."""
    from leadcrm import config
    from leadcrm.logging_config import configure_logging
    from leadcrm.lifecycle.config_store import ConfigStore, load_remind_config
    from leadcrm.lifecycle.sweep import run_sweep
    from leadcrm.scheduler import OverdueSweepScheduler, parse_schedule
    from leadcrm.services.circuit_breaker import init_breakers
    from leadcrm.services.notifications import NotificationDispatcher

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    app.json.ensure_ascii = False

    if session_factory is None:
        from leadcrm.database import get_session
        session_factory = get_session
    if redis_client is None:
        from leadcrm.extensions import redis_client

    # Import models so Base.metadata knows about them.
    # Schema is managed by Alembic; no create_all() call.
    import importlib
    importlib.import_module('leadcrm.models.lead')
    importlib.import_module('leadcrm.models.follow_up')
    importlib.import_module('leadcrm.models.remind_config')
    importlib.import_module('leadcrm.models.remind_email')

    init_breakers(redis_client)

    config_store = config_store or ConfigStore(loader=partial(load_remind_config, session_factory))
    dispatcher = dispatcher or NotificationDispatcher(redis_client=redis_client)
    scheduler = OverdueSweepScheduler(
        partial(run_sweep, session_factory, config_store, dispatcher),
        times=parse_schedule(config.REMIND_SCHEDULE_TIMES),
        run_on_start=config.REMIND_RUN_ON_START,
    )

    app.extensions['session_factory'] = session_factory
    app.extensions['config_store'] = config_store
    app.extensions['dispatcher'] = dispatcher
    app.extensions['sweep_scheduler'] = scheduler

    from leadcrm.routes.health import bp as health_bp
    from leadcrm.routes.followup import bp as followup_bp
    from leadcrm.routes.remind_config import bp as remind_config_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(followup_bp)
    app.register_blueprint(remind_config_bp)

    return app


def start_scheduler(app):
    """Start the background overdue sweep if SCHEDULER_ENABLED."""
    from leadcrm.config import SCHEDULER_ENABLED

    if SCHEDULER_ENABLED:
        app.extensions['sweep_scheduler'].start()
    return app.extensions['sweep_scheduler']
