"""Tests for finishing live matches and reactivating scheduled ones."""
import pytest

from padel_live.app import db
from padel_live.errors import InvalidMatchState, InvalidScheduleData, MatchNotFound
from padel_live.models import Court, Result, ScheduledMatch, ScheduledMatchPlayer
from padel_live.services import live_matches as lm
from padel_live.services.court_assignment import start_from_ready


@pytest.fixture
def live_match(seed, make_scheduled_match, check_in_pair, publisher):
    scheduled = make_scheduled_match()
    check_in_pair(scheduled, seed.pairs[0])
    check_in_pair(scheduled, seed.pairs[1])
    live = start_from_ready(scheduled.id, seed.courts[0].id, publish=publisher)
    return scheduled, live


@pytest.mark.parametrize('games,winner', [
    ((6, 4), 0), ((4, 6), 1), ((7, 5), 0), ((7, 6), 0), ((6, 7), 1), ((6, 0), 0),
    ((6, 5), None), ((5, 5), None), ((3, 2), None),
])
def test_set_winner(games, winner):
    assert lm.set_winner(*games) == winner


def test_finish_match(seed, live_match, publisher):
    scheduled, live = live_match
    publisher.clear()
    match, result = lm.finish_match(live.id, seed.pairs[1].id, [[4, 6], [6, 3], [5, 7]], publish=publisher)

    assert match.status == 'finished'
    assert match.winner_id == seed.pairs[1].id
    assert match.end_time is not None
    assert result.winner_id == seed.pairs[1].id
    assert result.loser_id == seed.pairs[0].id
    assert result.score == {'sets': [[4, 6], [6, 3], [5, 7]]}
    assert result.duration_minutes == 0
    assert db.session.get(ScheduledMatch, scheduled.id).status == 'completed'
    assert db.session.get(Court, seed.courts[0].id).is_available is True
    assert publisher.types()[0] == 'match_finished'


def test_finish_rejects_incomplete_set(seed, live_match, publisher):
    _, live = live_match
    with pytest.raises(InvalidScheduleData) as excinfo:
        lm.finish_match(live.id, seed.pairs[0].id, [[6, 4], [5, 4]], publish=publisher)
    assert 'Set incompleto' in excinfo.value.message


def test_finish_rejects_winner_without_two_sets(seed, live_match, publisher):
    _, live = live_match
    with pytest.raises(InvalidScheduleData):
        lm.finish_match(live.id, seed.pairs[0].id, [[6, 4], [3, 6]], publish=publisher)
    with pytest.raises(InvalidScheduleData):
        lm.finish_match(live.id, seed.pairs[1].id, [[6, 4], [6, 4]], publish=publisher)


def test_finish_rejects_unknown_or_closed_match(seed, live_match, publisher):
    _, live = live_match
    with pytest.raises(MatchNotFound):
        lm.finish_match(9999, seed.pairs[0].id, [[6, 0], [6, 0]], publish=publisher)
    lm.finish_match(live.id, seed.pairs[0].id, [[6, 0], [6, 0]], publish=publisher)
    with pytest.raises(InvalidMatchState):
        lm.finish_match(live.id, seed.pairs[0].id, [[6, 0], [6, 0]], publish=publisher)


def test_reactivate_completed_match(seed, live_match, publisher):
    scheduled, live = live_match
    lm.finish_match(live.id, seed.pairs[0].id, [[6, 1], [6, 1]], publish=publisher)

    publisher.clear()
    reopened = lm.reactivate(scheduled.id, publish=publisher)

    assert reopened.status == 'scheduled'
    assert reopened.match_id is None
    assert reopened.court_id is None
    assert Result.query.filter_by(match_id=live.id).count() == 0
    rows = ScheduledMatchPlayer.query.filter_by(scheduled_match_id=scheduled.id).all()
    assert all(row.is_present is None for row in rows)
    assert publisher.types() == ['match_reactivated']


def test_reactivate_requires_completed(make_scheduled_match, publisher):
    scheduled = make_scheduled_match()
    with pytest.raises(InvalidMatchState):
        lm.reactivate(scheduled.id, publish=publisher)
