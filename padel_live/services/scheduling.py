"""Creating and deleting scheduled matches."""
import logging
from datetime import date, datetime

from padel_live.errors import (
    InvalidMatchState, InvalidScheduleData, ScheduledMatchNotFound, TournamentNotFound,
)
from padel_live.events import make_event, publish as default_publish
from padel_live.models import STATUS_PLAYING, STATUS_SCHEDULED, TERMINAL_STATUSES
from padel_live.services.court_assignment import detach_court
from padel_live.services.timezones import InvalidPlannedTime, parse_planned_time
from padel_live.storage import storage as default_storage
from padel_live.time_utils import as_naive_utc

logger = logging.getLogger(__name__)


def parse_day(raw):
    """Accept a date, a datetime or an ISO string; return midnight of that date."""
    if isinstance(raw, datetime):
        raw = as_naive_utc(raw).date()
    elif not isinstance(raw, date):
        text = str(raw or '').strip()
        try:
            raw = date.fromisoformat(text[:10])
        except ValueError:
            raise InvalidScheduleData('Fecha inválida') from None
    return datetime(raw.year, raw.month, raw.day)


def _normalize_planned_time(raw):
    if raw in (None, ''):
        return None
    try:
        parsed = parse_planned_time(raw)
    except InvalidPlannedTime:
        raise InvalidScheduleData('Hora inválida, use el formato HH:MM') from None
    return parsed.strftime('%H:%M')


def find_duplicate(storage, tournament_id, day, court_id, planned_time):
    if not court_id or not planned_time:
        return None
    for other in storage.get_scheduled_matches_by_tournament(tournament_id, day=day.date()):
        if (other.planned_court_id == court_id and other.planned_time == planned_time
                and other.status not in TERMINAL_STATUSES):
            return other
    return None


def schedule_match(tournament_id, day, pair1_id, pair2_id, planned_time=None, *,
                   category_id=None, format=None, court_id=None, notes='',
                   storage=None, publish=None):
    """Create a scheduled match together with its four presence rows."""
    storage = storage or default_storage
    publish = publish or default_publish

    if not storage.get_tournament(tournament_id):
        raise TournamentNotFound()
    if not pair1_id or not pair2_id or pair1_id == pair2_id:
        raise InvalidScheduleData('Se requieren dos parejas distintas')

    pairs = [storage.get_pair(pair1_id), storage.get_pair(pair2_id)]
    if not all(pairs):
        raise InvalidScheduleData('Pareja no encontrada')
    if any(p.tournament_id != tournament_id for p in pairs):
        raise InvalidScheduleData('Las parejas no pertenecen al torneo')
    if court_id and not storage.get_court(court_id):
        raise InvalidScheduleData('Cancha no encontrada')

    day = parse_day(day)
    planned_time = _normalize_planned_time(planned_time)
    if find_duplicate(storage, tournament_id, day, court_id, planned_time):
        raise InvalidScheduleData('Ya existe un partido programado en esta cancha a la misma hora')

    player_rows = []
    for pair in pairs:
        for player_id in (pair.player1_id, pair.player2_id):
            player_rows.append({'player_id': player_id, 'pair_id': pair.id, 'is_present': None})

    try:
        match = storage.create_scheduled_match(
            player_rows,
            tournament_id=tournament_id,
            day=day,
            planned_time=planned_time,
            pair1_id=pair1_id,
            pair2_id=pair2_id,
            category_id=category_id if category_id is not None else pairs[0].category_id,
            format=format,
            planned_court_id=court_id,
            status=STATUS_SCHEDULED,
            notes=notes or '',
        )
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info(
        'Scheduled match %s created for %s %s',
        match.id, day.date().isoformat(), planned_time or '(no time)',
    )
    publish(make_event('scheduled_match_created', match))
    return match


def delete_scheduled_match(scheduled_match_id, *, storage=None, publish=None):
    storage = storage or default_storage
    publish = publish or default_publish

    match = storage.get_scheduled_match(scheduled_match_id)
    if not match:
        raise ScheduledMatchNotFound()
    if match.status == STATUS_PLAYING:
        raise InvalidMatchState('Finalice el partido en juego antes de eliminarlo')

    events = []
    try:
        detach_court(storage, match, events)
        storage.delete_scheduled_match(match.id)
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Scheduled match %s deleted', scheduled_match_id)
    for event in events:
        publish(event)
    publish(make_event('scheduled_match_deleted', {'id': scheduled_match_id}))
    return True
