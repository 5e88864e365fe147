"""Player check-in for scheduled matches.

Each write re-reads all four presence rows in the same transaction and keeps
the match status in step with them: four players present moves a scheduled
match to ready, losing any of them moves a ready match back to scheduled. An
assigned match whose court is free starts as soon as the fourth player
arrives.
"""
import logging

from padel_live.errors import InvalidMatchState, PlayerNotInMatch, ScheduledMatchNotFound
from padel_live.events import make_event, publish as default_publish
from padel_live.models import STATUS_ASSIGNED, STATUS_READY, STATUS_SCHEDULED
from padel_live.services import presence
from padel_live.services.court_assignment import begin_play
from padel_live.storage import storage as default_storage
from padel_live.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

_CHECK_IN_STATUSES = {STATUS_SCHEDULED, STATUS_READY, STATUS_ASSIGNED}


def check_in(scheduled_match_id, player_id, checked_in_by=None, *, storage=None, publish=None):
    return _set_presence(
        scheduled_match_id, player_id, 'player_checked_in',
        storage=storage, publish=publish,
        is_present=True, check_in_time=utcnow_naive(), checked_in_by=checked_in_by,
    )


def check_out(scheduled_match_id, player_id, *, storage=None, publish=None):
    return _set_presence(
        scheduled_match_id, player_id, 'player_checked_out',
        storage=storage, publish=publish,
        is_present=False, check_in_time=None, checked_in_by=None,
    )


def reset_status(scheduled_match_id, player_id, *, storage=None, publish=None):
    return _set_presence(
        scheduled_match_id, player_id, 'player_status_reset',
        storage=storage, publish=publish,
        is_present=None, check_in_time=None, checked_in_by=None,
    )


def _set_presence(scheduled_match_id, player_id, event_type, *, storage, publish, **changes):
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_scheduled_match(scheduled_match_id, for_update=True)
    if not match:
        storage.rollback()
        raise ScheduledMatchNotFound()
    if match.status not in _CHECK_IN_STATUSES:
        storage.rollback()
        raise InvalidMatchState('No se puede modificar la asistencia de este partido')

    events = []
    try:
        row = storage.update_scheduled_match_player(match.id, player_id, **changes)
        if not row:
            raise PlayerNotInMatch()
        players = storage.get_scheduled_match_players(match.id)
        _sync_status(storage, match, players, events)
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.debug(
        'Scheduled match %s player %s is_present=%s (status %s)',
        match.id, player_id, row.is_present, match.status,
    )
    publish(make_event(event_type, {
        'scheduled_match_id': match.id,
        'player_id': player_id,
        'match': match.to_dict(),
    }))
    for event in events:
        publish(event)
    return row, match


def _sync_status(storage, match, players, events):
    everyone_here = presence.all_present(presence.summarize(match, players))
    if match.status == STATUS_SCHEDULED and everyone_here:
        storage.update_scheduled_match(match.id, status=STATUS_READY)
    elif match.status == STATUS_READY and not everyone_here:
        storage.update_scheduled_match(match.id, status=STATUS_SCHEDULED)
    elif (match.status == STATUS_ASSIGNED and everyone_here
          and match.court_id and not match.pre_assigned_at):
        court = storage.update_court(match.court_id, is_available=False)
        begin_play(storage, match, match.court_id, events)
        events.append(make_event('court_updated', court))
        logger.info('Scheduled match %s started on check-in of the last player', match.id)
