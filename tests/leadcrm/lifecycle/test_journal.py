"""Tests for leadcrm.lifecycle.journal — append-only follow-up journal access."""
from datetime import datetime
from unittest.mock import patch

import pytest

from leadcrm.lifecycle.errors import ValidationError
from leadcrm.lifecycle.journal import (
    Contact, append_entry, latest_entry, latest_entries, list_entries,
)
from leadcrm.models.follow_up import FollowUpRecord

NOW = datetime(2026, 3, 14, 15, 30, 0)


class TestContactValidate:

    def test_valid(self):
        Contact(method='phone', content='discussed pricing').validate()

    @pytest.mark.parametrize('method,content,field', [
        ('', 'x', 'method'),
        ('  ', 'x', 'method'),
        ('phone', '', 'content'),
        ('phone', '   ', 'content'),
        (None, 'x', 'method'),
        (123, 'x', 'method'),
        ('phone', ['x'], 'content'),
    ])
    def test_rejects_blank_or_non_string_fields(self, method, content, field):
        with pytest.raises(ValidationError) as exc:
            Contact(method=method, content=content).validate()
        assert exc.value.field == field

    @pytest.mark.parametrize('kwargs,field', [
        ({'actor_id': '7'}, 'actor_id'),
        ({'actor_id': True}, 'actor_id'),
        ({'outcome': 5}, 'outcome'),
    ])
    def test_rejects_wrong_types(self, kwargs, field):
        with pytest.raises(ValidationError) as exc:
            Contact(method='phone', content='x', **kwargs).validate()
        assert exc.value.field == field


class TestAppendEntry:

    def test_uses_supplied_time(self, db_session, make_lead):
        lead = make_lead()
        when = datetime(2026, 3, 12, 9, 0)
        entry = append_entry(db_session, lead.id, Contact('wechat', 'sent brochure', occurred_at=when, actor_id=7))
        assert entry.id is not None
        assert entry.occurred_at == when
        assert entry.actor_id == 7

    def test_defaults_to_now(self, db_session, make_lead):
        lead = make_lead()
        entry = append_entry(db_session, lead.id, Contact('phone', 'called'), now=NOW)
        assert entry.occurred_at == NOW

    def test_strips_method(self, db_session, make_lead):
        lead = make_lead()
        entry = append_entry(db_session, lead.id, Contact(' phone ', 'called'), now=NOW)
        assert entry.method == 'phone'


class TestLatestEntry:

    def test_none_when_empty(self, db_session, make_lead):
        assert latest_entry(db_session, make_lead().id) is None

    def test_max_occurred_at_not_insert_order(self, db_session, make_lead, add_entry):
        lead = make_lead()
        newest = add_entry(lead.id, datetime(2026, 3, 13, 10, 0), content='newest')
        add_entry(lead.id, datetime(2026, 3, 10, 10, 0), content='backfilled')
        assert latest_entry(db_session, lead.id).id == newest.id


class TestLatestEntries:

    def test_batched_per_lead(self, db_session, make_lead, add_entry):
        a = make_lead(customer_nickname='A')
        b = make_lead(customer_nickname='B')
        c = make_lead(customer_nickname='C')
        add_entry(a.id, datetime(2026, 3, 1))
        a_new = add_entry(a.id, datetime(2026, 3, 5))
        b_only = add_entry(b.id, datetime(2026, 3, 2))

        result = latest_entries(db_session, [a.id, b.id, c.id])
        assert result[a.id].id == a_new.id
        assert result[b.id].id == b_only.id
        assert c.id not in result

    def test_tie_broken_by_highest_id(self, db_session, make_lead, add_entry):
        lead = make_lead()
        same = datetime(2026, 3, 5, 12, 0)
        add_entry(lead.id, same, content='first')
        second = add_entry(lead.id, same, content='second')
        assert latest_entries(db_session, [lead.id])[lead.id].id == second.id

    def test_empty_ids(self, db_session):
        assert latest_entries(db_session, []) == {}

    def test_chunks_large_id_lists(self, db_session, make_lead, add_entry):
        lead = make_lead()
        add_entry(lead.id, datetime(2026, 3, 5))
        with patch('leadcrm.lifecycle.journal._BATCH_SIZE', 2):
            result = latest_entries(db_session, [9001, 9002, lead.id, 9003])
        assert list(result) == [lead.id]


class TestListEntries:

    def test_pages_newest_first(self, db_session, make_lead, add_entry):
        lead = make_lead()
        for day in range(1, 6):
            add_entry(lead.id, datetime(2026, 3, day), content=f'day {day}')

        page1 = list_entries(db_session, lead.id, page=1, page_size=2)
        assert page1['total'] == 5
        assert page1['total_pages'] == 3
        assert [e['content'] for e in page1['list']] == ['day 5', 'day 4']

        page3 = list_entries(db_session, lead.id, page=3, page_size=2)
        assert [e['content'] for e in page3['list']] == ['day 1']

    @pytest.mark.parametrize('page,page_size', [(0, 20), (1, 0), (1, 101)])
    def test_rejects_bad_paging(self, db_session, page, page_size):
        with pytest.raises(ValidationError):
            list_entries(db_session, 1, page=page, page_size=page_size)

    def test_entries_serialized(self, db_session, make_lead, add_entry):
        lead = make_lead()
        add_entry(lead.id, datetime(2026, 3, 5, 8, 30), method='visit', content='on site', outcome='interested')
        row = list_entries(db_session, lead.id)['list'][0]
        assert row['occurred_at'] == '2026-03-05 08:30:00'
        assert row['method'] == 'visit'
        assert row['outcome'] == 'interested'
        assert db_session.query(FollowUpRecord).count() == 1
