"""Administrator decisions on scheduled matches: default wins and cancellations."""
import logging

from padel_live.errors import InvalidMatchState, ScheduledMatchNotFound
from padel_live.events import make_event, publish as default_publish
from padel_live.models import (
    MATCH_FINISHED, OUTCOME_CANCELLED, OUTCOME_DEFAULT,
    PRE_PLAYING_STATUSES, STATUS_CANCELLED, STATUS_COMPLETED,
)
from padel_live.services.court_assignment import detach_court
from padel_live.storage import storage as default_storage
from padel_live.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

DEFAULT_WIN_REASON = 'PARTIDO GANADO POR DEFAULT (DQF)'
DEFAULT_WIN_NOTES = 'Descalificado por administrador - pareja contraria ausente'
DEFAULT_WIN_SETS = [[6, 3], [6, 3]]


def default_win_score(scheduled_match, winner_pair_id):
    """6-3 6-3 for the winner, oriented as pair1-pair2."""
    if winner_pair_id == scheduled_match.pair1_id:
        sets = [list(s) for s in DEFAULT_WIN_SETS]
    else:
        sets = [[b, a] for a, b in DEFAULT_WIN_SETS]
    return {'sets': sets, 'current_set': len(sets) + 1, 'current_points': [0, 0]}


def confirm_default_win(scheduled_match_id, *, storage=None, publish=None):
    """Award the match to the pair the timeout sweep found present.

    Returns ``(scheduled_match, live_match)``.
    """
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_scheduled_match(scheduled_match_id)
    if not match:
        raise ScheduledMatchNotFound()
    if match.status not in PRE_PLAYING_STATUSES:
        raise InvalidMatchState('El partido ya comenzó o fue cerrado')
    if not match.pending_dqf:
        raise InvalidMatchState('Este partido no está pendiente de descalificación')
    if not match.default_winner_pair_id:
        raise InvalidMatchState('No se puede determinar el ganador por default')

    winner_pair_id = match.default_winner_pair_id
    loser_pair_id = match.opponent_of(winner_pair_id)
    score = default_win_score(match, winner_pair_id)
    now = utcnow_naive()

    events = []
    try:
        detach_court(storage, match, events)
        live = storage.create_match(
            tournament_id=match.tournament_id,
            court_id=match.court_id,
            pair1_id=match.pair1_id,
            pair2_id=match.pair2_id,
            category_id=match.category_id,
            format=match.format,
            status=MATCH_FINISHED,
            score=score,
            winner_id=winner_pair_id,
            start_time=now,
            end_time=now,
            notes=DEFAULT_WIN_NOTES,
        )
        storage.create_result(
            match_id=live.id,
            winner_id=winner_pair_id,
            loser_id=loser_pair_id,
            score=score,
            duration_minutes=0,
        )
        match = storage.update_scheduled_match(
            match.id,
            status=STATUS_COMPLETED,
            match_id=live.id,
            outcome=OUTCOME_DEFAULT,
            outcome_reason=DEFAULT_WIN_REASON,
            pending_dqf=False,
            pre_assigned_at=None,
        )
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info(
        'Scheduled match %s won by default by pair %s', match.id, winner_pair_id,
    )
    publish(make_event('match_default_win', match))
    publish(make_event('match_finished', live))
    for event in events:
        publish(event)
    return match, live


def cancel_scheduled_match(scheduled_match_id, reason='', *, storage=None, publish=None):
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_scheduled_match(scheduled_match_id)
    if not match:
        raise ScheduledMatchNotFound()
    if match.status not in PRE_PLAYING_STATUSES:
        raise InvalidMatchState('Solo se pueden cancelar partidos que no han comenzado')

    events = []
    try:
        detach_court(storage, match, events)
        match = storage.update_scheduled_match(
            match.id,
            status=STATUS_CANCELLED,
            outcome=OUTCOME_CANCELLED,
            outcome_reason=reason or None,
            pending_dqf=False,
            court_id=None,
            pre_assigned_at=None,
        )
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Scheduled match %s cancelled (%s)', match.id, reason or 'no reason')
    publish(make_event('match_cancelled', match))
    for event in events:
        publish(event)
    return match
