"""Tests for the check-in timeout sweep."""
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from padel_live.app import db
from padel_live.models import Pair, ScheduledMatch, ScheduledMatchPlayer, Tournament, Match
from padel_live.services import timeout_processor as tp
from padel_live.services.adjudication import confirm_default_win
from padel_live.services.timezones import combine_date_and_time, utc_from_zoned
from padel_live.storage import SqlStorage

TZ = 'America/Santiago'


def _processor(publisher, **kwargs):
    return tp.TimeoutProcessor(publish=publisher, **kwargs)


def _local(hour, minute):
    return utc_from_zoned(2025, 10, 20, hour, minute, TZ)


def test_neither_pair_present_takes_no_action(make_scheduled_match, publisher):
    match = make_scheduled_match()
    report = _processor(publisher).run_sweep(now=_local(10, 16))

    assert report.decisions[match.id] == tp.NEITHER_PRESENT
    assert report.flagged == 0
    assert db.session.get(ScheduledMatch, match.id).pending_dqf is False
    assert db.session.get(ScheduledMatch, match.id).status == 'scheduled'
    assert 'match_pending_dqf' not in publisher.types()


def test_both_pairs_present_takes_no_action(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    check_in_pair(match, seed.pairs[0])
    check_in_pair(match, seed.pairs[1])

    report = _processor(publisher).run_sweep(now=_local(10, 16))
    assert report.decisions[match.id] == tp.BOTH_PRESENT
    assert db.session.get(ScheduledMatch, match.id).pending_dqf is False


def test_only_pair1_present_flags_default_win(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match(planned_time='10:00')
    check_in_pair(match, seed.pairs[0])
    publisher.clear()

    report = _processor(publisher).run_sweep(now=_local(10, 16))

    assert report.decisions[match.id] == tp.FLAGGED
    assert report.flagged == 1
    stored = db.session.get(ScheduledMatch, match.id)
    assert stored.pending_dqf is True
    assert stored.default_winner_pair_id == seed.pairs[0].id
    assert publisher.types() == ['match_pending_dqf']
    assert publisher.events[0]['data']['id'] == match.id

    scheduled, live = confirm_default_win(match.id, publish=publisher)
    assert scheduled.status == 'completed'
    assert scheduled.outcome == 'default'
    assert scheduled.outcome_detail.winner_pair_id == seed.pairs[0].id
    assert live.score['sets'] == [[6, 3], [6, 3]]


def test_only_pair2_present_flags_pair2(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    check_in_pair(match, seed.pairs[1])

    _processor(publisher).run_sweep(now=_local(10, 30))
    assert db.session.get(ScheduledMatch, match.id).default_winner_pair_id == seed.pairs[1].id


def test_flagging_is_idempotent(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    check_in_pair(match, seed.pairs[0])
    publisher.clear()

    processor = _processor(publisher)
    processor.run_sweep(now=_local(10, 16))
    second = processor.run_sweep(now=_local(10, 17))

    assert second.decisions[match.id] == tp.ALREADY_FLAGGED
    assert len(publisher.of_type('match_pending_dqf')) == 1


def test_no_action_before_deadline(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    check_in_pair(match, seed.pairs[0])
    publisher.clear()

    report = _processor(publisher).run_sweep(now=_local(10, 10))
    assert report.decisions[match.id] == tp.NOT_DUE
    assert db.session.get(ScheduledMatch, match.id).pending_dqf is False
    assert publisher.events == []


def test_deadline_includes_tolerance(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    processor = _processor(publisher, tolerance_minutes=30)
    deadline = processor.deadline_for(match, TZ)
    assert deadline == combine_date_and_time(match.day, '10:00', TZ) + timedelta(minutes=30)

    check_in_pair(match, seed.pairs[0])
    assert processor.run_sweep(now=_local(10, 20)).decisions[match.id] == tp.NOT_DUE


def test_backfill_guard_boundary(seed, make_scheduled_match, check_in_pair, publisher):
    recent = make_scheduled_match(pair_a=0, pair_b=1, planned_time='10:00')
    old = make_scheduled_match(pair_a=2, pair_b=3, planned_time='11:00')
    check_in_pair(recent, seed.pairs[0])
    check_in_pair(old, seed.pairs[2])

    processor = _processor(publisher)
    recent.created_at = processor.deadline_for(recent, TZ) + timedelta(minutes=10)
    old.created_at = processor.deadline_for(old, TZ) + timedelta(hours=3)
    db.session.commit()

    report = processor.run_sweep(now=_local(16, 0))
    assert report.decisions[recent.id] == tp.BACKFILLED
    assert report.decisions[old.id] == tp.FLAGGED


def test_match_without_planned_time_is_skipped(make_scheduled_match, publisher):
    match = make_scheduled_match(planned_time=None)
    report = _processor(publisher).run_sweep(now=_local(23, 0))
    assert report.decisions[match.id] == tp.NO_PLANNED_TIME


def test_playing_and_closed_matches_are_not_loaded(make_scheduled_match, publisher):
    match = make_scheduled_match()
    match.status = 'cancelled'
    db.session.commit()
    report = _processor(publisher).run_sweep(now=_local(12, 0))
    assert match.id not in report.decisions


@pytest.mark.parametrize('zone', ['Mars/Olympus_Mons', 'America'])
def test_bad_timezone_is_skipped_and_sweep_continues(seed, make_scheduled_match, check_in_pair, publisher, zone):
    good = make_scheduled_match()
    check_in_pair(good, seed.pairs[0])

    broken = Tournament(name='Torneo roto', club_id=seed.club.id, timezone=zone)
    db.session.add(broken)
    db.session.flush()
    pair_a = Pair(tournament_id=broken.id, player1_id=seed.players[4].id, player2_id=seed.players[5].id)
    pair_b = Pair(tournament_id=broken.id, player1_id=seed.players[6].id, player2_id=seed.players[7].id)
    db.session.add_all([pair_a, pair_b])
    db.session.flush()
    bad = ScheduledMatch(
        tournament_id=broken.id, day=good.day, planned_time='10:00',
        pair1_id=pair_a.id, pair2_id=pair_b.id,
    )
    bad.players = [
        ScheduledMatchPlayer(player_id=seed.players[i].id, pair_id=pair.id)
        for i, pair in ((4, pair_a), (5, pair_a), (6, pair_b), (7, pair_b))
    ]
    db.session.add(bad)
    db.session.commit()

    report = _processor(publisher).run_sweep(now=_local(12, 0))
    assert report.decisions[bad.id] == tp.ERROR
    assert report.decisions[good.id] == tp.FLAGGED
    assert report.errors == 1


def test_malformed_stored_time_is_skipped(make_scheduled_match, publisher):
    match = make_scheduled_match()
    match.planned_time = '9h'
    db.session.commit()
    report = _processor(publisher).run_sweep(now=_local(12, 0))
    assert report.decisions[match.id] == tp.ERROR


def test_overlapping_sweep_is_skipped(make_scheduled_match, publisher):
    processor = _processor(publisher)
    processor._running.acquire()
    try:
        assert processor.run_sweep(now=_local(12, 0)) is None
    finally:
        processor._running.release()
    assert processor.run_sweep(now=_local(12, 0)) is not None


def test_from_config_reads_app_settings(app):
    app.config['CHECK_IN_TOLERANCE_MINUTES'] = 20
    app.config['BACKFILL_GUARD_MINUTES'] = 60
    processor = tp.TimeoutProcessor.from_config(app.config)
    assert processor.tolerance == timedelta(minutes=20)
    assert processor.backfill_guard == timedelta(hours=1)


def test_default_win_for_pair2_is_oriented(seed, make_scheduled_match, check_in_pair, publisher):
    match = make_scheduled_match()
    check_in_pair(match, seed.pairs[1])
    _processor(publisher).run_sweep(now=_local(10, 16))

    _, live = confirm_default_win(match.id, publish=publisher)
    stored = db.session.get(Match, live.id)
    assert stored.score['sets'] == [[3, 6], [3, 6]]
    assert stored.winner_id == seed.pairs[1].id


class FlakyPlayersStorage(SqlStorage):
    def __init__(self, failing_id):
        self.failing_id = failing_id

    def get_scheduled_match_players(self, scheduled_match_id, **kwargs):
        if scheduled_match_id == self.failing_id:
            raise OperationalError('SELECT', {}, Exception('connection reset'))
        return super().get_scheduled_match_players(scheduled_match_id, **kwargs)


def test_storage_failure_on_one_match_does_not_stop_sweep(seed, make_scheduled_match, check_in_pair, publisher):
    failing = make_scheduled_match(pair_a=0, pair_b=1)
    good = make_scheduled_match(pair_a=2, pair_b=3)
    check_in_pair(failing, seed.pairs[0])
    check_in_pair(good, seed.pairs[2])

    processor = tp.TimeoutProcessor(storage=FlakyPlayersStorage(failing.id), publish=publisher)
    report = processor.run_sweep(now=_local(12, 0))

    assert report.decisions[failing.id] == tp.ERROR
    assert report.decisions[good.id] == tp.FLAGGED
    assert db.session.get(ScheduledMatch, good.id).pending_dqf is True
