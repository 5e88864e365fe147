"""Closing live matches and reopening completed scheduled matches."""
import logging

from padel_live.errors import (
    InvalidMatchState, InvalidScheduleData, MatchNotFound, ScheduledMatchNotFound,
)
from padel_live.events import make_event, publish as default_publish
from padel_live.models import MATCH_FINISHED, MATCH_PLAYING, STATUS_COMPLETED, STATUS_SCHEDULED
from padel_live.services.court_assignment import free_court
from padel_live.storage import storage as default_storage
from padel_live.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

SETS_TO_WIN = 2


def set_winner(games1, games2):
    """Return 0 or 1 for the side that won a completed set, None if it is unfinished.

    A set is complete at 6 games with a two game lead, or 7-5 / 7-6.
    """
    if games1 >= 6 and games1 - games2 >= 2:
        return 0
    if games2 >= 6 and games2 - games1 >= 2:
        return 1
    if (games1, games2) == (7, 6):
        return 0
    if (games1, games2) == (6, 7):
        return 1
    return None


def _parse_sets(sets):
    if not isinstance(sets, (list, tuple)) or not sets:
        raise InvalidScheduleData('Se requieren los sets del partido')
    parsed = []
    for item in sets:
        try:
            games1, games2 = (int(g) for g in item)
        except (TypeError, ValueError):
            raise InvalidScheduleData('Formato de set inválido') from None
        if games1 < 0 or games2 < 0:
            raise InvalidScheduleData('Formato de set inválido')
        parsed.append([games1, games2])
    return parsed


def count_sets_won(sets):
    won = [0, 0]
    for games1, games2 in sets:
        winner = set_winner(games1, games2)
        if winner is None:
            raise InvalidScheduleData(
                f'Set incompleto detectado: {games1}-{games2}. '
                'Los sets deben estar completos para finalizar el partido.'
            )
        won[winner] += 1
    return won


def finish_match(match_id, winner_pair_id, sets, *, storage=None, publish=None):
    """Record the result of a live match and close its scheduled match.

    Returns ``(live_match, result)``.
    """
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_match(match_id)
    if not match:
        raise MatchNotFound()
    if match.status != MATCH_PLAYING:
        raise InvalidMatchState('El partido no está en juego')
    if winner_pair_id not in (match.pair1_id, match.pair2_id):
        raise InvalidScheduleData('La pareja ganadora no juega este partido')

    sets = _parse_sets(sets)
    won = count_sets_won(sets)
    winner_index = 0 if winner_pair_id == match.pair1_id else 1
    if won[winner_index] < SETS_TO_WIN:
        raise InvalidScheduleData('El ganador debe haber ganado al menos 2 de 3 sets completos')

    loser_pair_id = match.pair2_id if winner_index == 0 else match.pair1_id
    now = utcnow_naive()
    duration = None
    if match.start_time:
        duration = max(0, int((now - match.start_time).total_seconds() // 60))

    events = []
    try:
        result = storage.create_result(
            match_id=match.id,
            winner_id=winner_pair_id,
            loser_id=loser_pair_id,
            score={'sets': sets},
            duration_minutes=duration,
        )
        match = storage.update_match(
            match.id,
            status=MATCH_FINISHED,
            end_time=now,
            winner_id=winner_pair_id,
            score={'sets': sets, 'current_set': len(sets) + 1, 'current_points': [0, 0]},
        )
        scheduled = storage.get_scheduled_match_by_match_id(match.id)
        if scheduled:
            storage.update_scheduled_match(scheduled.id, status=STATUS_COMPLETED)
        if match.court_id:
            free_court(storage, match.court_id, events)
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Match %s finished, winner pair %s (%s)', match.id, winner_pair_id, sets)
    publish(make_event('match_finished', {'match': match.to_dict(), 'result': result.to_dict()}))
    for event in events:
        publish(event)
    return match, result


def reactivate(scheduled_match_id, *, storage=None, publish=None):
    """Reopen a completed scheduled match so it can be played again."""
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_scheduled_match(scheduled_match_id)
    if not match:
        raise ScheduledMatchNotFound()
    if match.status != STATUS_COMPLETED:
        raise InvalidMatchState('Solo se pueden reactivar partidos completados')

    try:
        if match.match_id:
            storage.delete_result_for_match(match.match_id)
        for player in storage.get_scheduled_match_players(match.id):
            storage.update_scheduled_match_player(
                match.id, player.player_id,
                is_present=None, check_in_time=None, checked_in_by=None,
            )
        match = storage.update_scheduled_match(
            match.id,
            status=STATUS_SCHEDULED,
            match_id=None,
            court_id=None,
            outcome=None,
            outcome_reason=None,
            default_winner_pair_id=None,
            pending_dqf=False,
            pre_assigned_at=None,
        )
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Scheduled match %s reactivated', match.id)
    publish(make_event('match_reactivated', match))
    return match
