"""Tests for leadcrm.database engine options."""
from leadcrm.database import engine_options, normalize_url


class TestEngineOptions:

    def test_postgres_scheme_rewritten(self):
        assert normalize_url('postgres://u:p@db/crm') == 'postgresql://u:p@db/crm'
        assert normalize_url('postgresql://u:p@db/crm') == 'postgresql://u:p@db/crm'

    def test_sqlite_allows_cross_thread_use(self):
        assert engine_options('sqlite:///local.db') == {'connect_args': {'check_same_thread': False}}

    def test_postgres_pool_sized_for_service(self):
        opts = engine_options('postgresql://u:p@db/crm')
        assert opts['pool_size'] == 3
        assert opts['max_overflow'] == 2
        assert opts['pool_pre_ping'] is True

    def test_pool_size_overridable(self):
        opts = engine_options('postgresql://u:p@db/crm', pool_size=8, max_overflow=0)
        assert opts['pool_size'] == 8
        assert opts['max_overflow'] == 0
