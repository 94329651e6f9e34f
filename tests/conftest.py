"""Shared test fixtures."""
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadcrm.database import Base


class FakeRedis:
    """Minimal in-memory Redis fake (hashes only) for circuit breaker state."""

    def __init__(self):
        self.hash_store = {}

    def hgetall(self, key):
        return {k: str(v) for k, v in self.hash_store.get(key, {}).items()}

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if field is not None:
            h[field] = value
        for k, v in (mapping or {}).items():
            h[k] = v
        return len(mapping or {}) + (1 if field is not None else 0)

    def delete(self, *keys):
        for k in keys:
            self.hash_store.pop(k, None)


class FakeConfigStore:
    """ConfigStore stand-in returning a fixed map."""

    def __init__(self, values=None):
        self.values = dict(values or {})
        self.invalidated = 0

    def snapshot(self):
        return dict(self.values)

    def get_max_idle_days(self, level):
        from leadcrm.lifecycle.engine import threshold_for
        return threshold_for(level, self.values)

    def invalidate(self):
        self.invalidated += 1


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created; one shared connection."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import leadcrm.models.lead
    import leadcrm.models.follow_up
    import leadcrm.models.remind_config
    import leadcrm.models.remind_email
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Factory handing out new sessions on the test engine (what production code calls)."""
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    """Session for arranging and asserting. Rolls back after each test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def config_store():
    return FakeConfigStore({'High': 3, 'Medium': 7, 'Low': 14})


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_lead(db_session):
    """Factory fixture — inserts and commits a Lead row."""
    from leadcrm.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            customer_nickname='Customer',
            source_platform='douyin',
            source_account='store-main',
            contact_account='13800000000',
            lead_time=datetime(2026, 3, 9, 10, 0, 0),
            intention_level='High',
            follow_up_person='Alice',
            enable_followup=True,
            end_followup=False,
            current_cycle_completed=False,
            need_followup=False,
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make


@pytest.fixture
def add_entry(db_session):
    """Factory fixture — appends and commits a journal row."""
    from leadcrm.models.follow_up import FollowUpRecord

    def _add(lead_id, occurred_at, method='phone', content='called', **kw):
        entry = FollowUpRecord(lead_id=lead_id, occurred_at=occurred_at, method=method, content=content, **kw)
        db_session.add(entry)
        db_session.commit()
        return entry
    return _add


@pytest.fixture
def dispatcher():
    """Recording dispatcher double."""
    from unittest.mock import MagicMock
    mock = MagicMock()
    mock.dispatch.return_value = {'email': True}
    return mock


@pytest.fixture
def app(session_factory, config_store, dispatcher, fake_redis):
    """Flask test app wired to the in-memory database."""
    from leadcrm import create_app
    app = create_app(
        session_factory=session_factory,
        config_store=config_store,
        dispatcher=dispatcher,
        redis_client=fake_redis,
    )
    app.config['TESTING'] = True
    yield app
    app.extensions['sweep_scheduler'].stop()


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c
