"""Tests for player check-in and the ready status."""
import pytest

from padel_live.app import db
from padel_live.errors import InvalidMatchState, PlayerNotInMatch, ScheduledMatchNotFound
from padel_live.models import Court, ScheduledMatch, ScheduledMatchPlayer
from padel_live.services import check_in as ci
from padel_live.services.court_assignment import manual_assign
from padel_live.storage import SqlStorage


def _player_ids(seed, *pair_indexes):
    ids = []
    for index in pair_indexes:
        pair = seed.pairs[index]
        ids.extend([pair.player1_id, pair.player2_id])
    return ids


def test_new_match_has_four_unmarked_players(make_scheduled_match):
    match = make_scheduled_match()
    rows = ScheduledMatchPlayer.query.filter_by(scheduled_match_id=match.id).all()
    assert len(rows) == 4
    assert all(row.is_present is None for row in rows)


def test_ready_only_after_fourth_check_in(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    player_ids = _player_ids(seed, 0, 1)

    for player_id in player_ids[:3]:
        ci.check_in(match.id, player_id, 'mesa', publish=publisher)
        assert db.session.get(ScheduledMatch, match.id).status == 'scheduled'

    ci.check_in(match.id, player_ids[3], 'mesa', publish=publisher)
    assert db.session.get(ScheduledMatch, match.id).status == 'ready'

    ci.check_out(match.id, player_ids[1], publish=publisher)
    assert db.session.get(ScheduledMatch, match.id).status == 'scheduled'


def test_reset_status_also_reverts_ready(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    for player_id in _player_ids(seed, 0, 1):
        ci.check_in(match.id, player_id, publish=publisher)

    row, updated = ci.reset_status(match.id, seed.pairs[1].player2_id, publish=publisher)
    assert row.is_present is None
    assert row.check_in_time is None
    assert updated.status == 'scheduled'


def test_check_in_records_who_and_when(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    row, _ = ci.check_in(match.id, seed.pairs[0].player1_id, 'arbitro', publish=publisher)
    assert row.is_present is True
    assert row.checked_in_by == 'arbitro'
    assert row.check_in_time is not None

    row, _ = ci.check_out(match.id, seed.pairs[0].player1_id, publish=publisher)
    assert row.is_present is False
    assert row.checked_in_by is None


def test_check_in_publishes_event(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    publisher.clear()
    ci.check_in(match.id, seed.pairs[0].player1_id, publish=publisher)
    assert publisher.types() == ['player_checked_in']
    data = publisher.events[0]['data']
    assert data['scheduled_match_id'] == match.id
    assert data['player_id'] == seed.pairs[0].player1_id


def test_unknown_player_and_match(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    with pytest.raises(PlayerNotInMatch):
        ci.check_in(match.id, seed.pairs[3].player1_id, publish=publisher)
    with pytest.raises(ScheduledMatchNotFound):
        ci.check_in(9999, seed.pairs[0].player1_id, publish=publisher)


def test_closed_match_rejects_check_in(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    match.status = 'completed'
    db.session.commit()
    with pytest.raises(InvalidMatchState):
        ci.check_in(match.id, seed.pairs[0].player1_id, publish=publisher)


def test_assigned_match_starts_on_last_check_in(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    court = seed.courts[0]
    manual_assign(match.id, court.id, publish=publisher)
    assert db.session.get(ScheduledMatch, match.id).status == 'assigned'

    for player_id in _player_ids(seed, 0, 1):
        ci.check_in(match.id, player_id, publish=publisher)

    stored = db.session.get(ScheduledMatch, match.id)
    assert stored.status == 'playing'
    assert stored.match_id is not None
    assert db.session.get(Court, court.id).is_available is False
    assert 'match_started' in publisher.types()


class LockRecordingStorage(SqlStorage):
    def __init__(self):
        self.locked = []

    def get_scheduled_match(self, scheduled_match_id, for_update=False):
        if for_update:
            self.locked.append(scheduled_match_id)
        return super().get_scheduled_match(scheduled_match_id, for_update=for_update)


def test_presence_write_locks_the_scheduled_match(seed, make_scheduled_match, publisher):
    match = make_scheduled_match()
    storage = LockRecordingStorage()
    for player_id in _player_ids(seed, 0, 1):
        ci.check_in(match.id, player_id, storage=storage, publish=publisher)

    assert storage.locked == [match.id] * 4
    assert db.session.get(ScheduledMatch, match.id).status == 'ready'
