"""Court assignment for scheduled matches.

A court is claimed with a conditional UPDATE (``Storage.claim_court``), so two
requests racing for the last free court cannot both win it. Freeing a court is
unconditional; exclusivity is enforced when a court is claimed, not when it is
released.
"""
import logging
import math

from padel_live.errors import (
    AssignmentFailed, CourtNotFound, CourtUnavailable, InvalidMatchState,
    NoCourtsAvailable, ScheduledMatchNotFound, TournamentNotFound,
)
from padel_live.events import make_event, publish as default_publish
from padel_live.models import (
    MATCH_PLAYING, STATUS_ASSIGNED, STATUS_PLAYING,
    STATUS_READY, STATUS_SCHEDULED, empty_score,
)
from padel_live.services import presence
from padel_live.storage import storage as default_storage
from padel_live.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

PRE_ASSIGN_MIN_PLAYING_MINUTES = 40

_ASSIGNABLE_STATUSES = {STATUS_SCHEDULED, STATUS_READY, STATUS_ASSIGNED}
# Only these statuses carry a court_id that is held or waited for.
_COURT_HOLDING_STATUSES = {STATUS_ASSIGNED, STATUS_PLAYING}


def _publish_all(publish, events):
    for event in events:
        publish(event)


def _load_scheduled_match(storage, scheduled_match_id):
    match = storage.get_scheduled_match(scheduled_match_id)
    if not match:
        raise ScheduledMatchNotFound()
    return match


def _load_court(storage, court_id):
    court = storage.get_court(court_id)
    if not court:
        raise CourtNotFound()
    return court


def begin_play(storage, scheduled_match, court_id, events):
    """Create the live match for ``scheduled_match`` on an already-held court."""
    live = storage.create_match(
        tournament_id=scheduled_match.tournament_id,
        court_id=court_id,
        pair1_id=scheduled_match.pair1_id,
        pair2_id=scheduled_match.pair2_id,
        category_id=scheduled_match.category_id,
        format=scheduled_match.format,
        status=MATCH_PLAYING,
        score=empty_score(),
        start_time=utcnow_naive(),
    )
    storage.update_scheduled_match(
        scheduled_match.id,
        status=STATUS_PLAYING,
        court_id=court_id,
        match_id=live.id,
        pre_assigned_at=None,
        pending_dqf=False,
    )
    events.append(make_event('match_started', live))
    return live


def free_court(storage, court_id, events):
    """Mark a court available and hand it to the match pre-assigned to it, if any."""
    court = storage.update_court(court_id, is_available=True)
    if not court:
        logger.warning('Tried to free missing court %s', court_id)
        return None
    events.append(make_event('court_updated', court))

    waiting_id = court.pre_assigned_scheduled_match_id
    if not waiting_id:
        return court

    storage.update_court(court_id, pre_assigned_scheduled_match_id=None)
    waiting = storage.get_scheduled_match(waiting_id)
    if not waiting or waiting.status != STATUS_ASSIGNED or waiting.court_id != court_id:
        return court

    # The waiting match holds the court from now on, whether it starts or not.
    if not storage.claim_court(court_id):
        logger.warning('Court %s was claimed before pre-assigned match %s took it', court_id, waiting.id)
        return court
    storage.update_scheduled_match(waiting.id, pre_assigned_at=None)
    events.append(make_event('match_enabled_from_preassign', {'scheduled_match_id': waiting.id}))
    logger.info('Court %s handed to pre-assigned match %s', court_id, waiting.id)

    players = storage.get_scheduled_match_players(waiting.id)
    if presence.all_present(presence.summarize(waiting, players)):
        begin_play(storage, waiting, court_id, events)
    court = storage.get_court(court_id)
    events.append(make_event('court_updated', court))
    return court


def detach_court(storage, scheduled_match, events):
    """Let go of the court an assigned or playing match holds or waits for.

    A held court is freed (with hand-over); a pre-assignment only drops the
    court's reference, since another match is still playing there.
    """
    court_id = scheduled_match.court_id
    if not court_id or scheduled_match.status not in _COURT_HOLDING_STATUSES:
        return None
    if scheduled_match.pre_assigned_at:
        court = storage.get_court(court_id)
        if court and court.pre_assigned_scheduled_match_id == scheduled_match.id:
            storage.update_court(court_id, pre_assigned_scheduled_match_id=None)
        return court
    return free_court(storage, court_id, events)


def _claim_first_free_court(storage, club_id):
    for court in storage.get_courts_by_club(club_id, only_available=True):
        if storage.claim_court(court.id):
            return court
        logger.debug('Court %s was taken before it could be claimed', court.id)
    return None


def auto_assign(scheduled_match_id, *, storage=None, publish=None):
    """Attach the first free court of the tournament's club to a scheduled match.

    Courts are tried in storage order; there is no fairness policy beyond that.
    A match whose four players are already present starts right away.
    """
    storage = storage or default_storage
    publish = publish or default_publish

    match = _load_scheduled_match(storage, scheduled_match_id)
    if match.status not in (STATUS_SCHEDULED, STATUS_READY):
        raise InvalidMatchState('El partido ya tiene cancha asignada o no está pendiente')
    tournament = storage.get_tournament(match.tournament_id)
    if not tournament:
        raise TournamentNotFound()

    claimed = _claim_first_free_court(storage, tournament.club_id)
    if claimed is None:
        storage.rollback()
        raise NoCourtsAvailable()

    events = []
    try:
        match = storage.update_scheduled_match(
            match.id, court_id=claimed.id, status=STATUS_ASSIGNED,
        )
        events.append(make_event('court_auto_assigned', match))
        players = storage.get_scheduled_match_players(match.id)
        if presence.all_present(presence.summarize(match, players)):
            begin_play(storage, match, claimed.id, events)
            logger.info('Scheduled match %s started on auto-assignment', match.id)
        events.append(make_event('court_updated', storage.get_court(claimed.id)))
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Scheduled match %s auto-assigned to court %s', match.id, match.court_id)
    _publish_all(publish, events)
    return match


def manual_assign(scheduled_match_id, court_id, *, pre_assign=False, storage=None, publish=None):
    """Attach ``court_id`` to a scheduled match without checking availability.

    Callers decide whether the court may be used. With ``pre_assign`` the court
    is still busy with another match; the assignment is recorded and the match
    takes the court over when it is freed.
    """
    storage = storage or default_storage
    publish = publish or default_publish

    match = _load_scheduled_match(storage, scheduled_match_id)
    if match.status not in _ASSIGNABLE_STATUSES:
        raise InvalidMatchState()
    court = _load_court(storage, court_id)

    events = []
    try:
        if match.court_id and match.court_id != court.id:
            detach_court(storage, match, events)

        if pre_assign:
            match = storage.update_scheduled_match(
                match.id, court_id=court.id, status=STATUS_ASSIGNED,
                pre_assigned_at=utcnow_naive(),
            )
            storage.update_court(court.id, pre_assigned_scheduled_match_id=match.id)
            events.append(make_event('court_pre_assigned', match))
        else:
            court = storage.update_court(court.id, is_available=False)
            match = storage.update_scheduled_match(
                match.id, court_id=court.id, status=STATUS_ASSIGNED, pre_assigned_at=None,
            )
            events.append(make_event('court_manually_assigned', match))
            events.append(make_event('court_updated', court))
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info(
        'Scheduled match %s %s court %s',
        match.id, 'pre-assigned to' if pre_assign else 'assigned to', court.id,
    )
    _publish_all(publish, events)
    return match


def pre_assignment_wait_minutes(court_id, *, now=None, threshold_minutes=PRE_ASSIGN_MIN_PLAYING_MINUTES,
                                storage=None):
    """Minutes left before a busy court may be pre-assigned.

    Returns 0 once the live match on the court has run for ``threshold_minutes``
    and None when no live match explains why the court is busy.
    """
    storage = storage or default_storage
    now = now or utcnow_naive()
    live = next((m for m in storage.get_live_matches() if m.court_id == court_id), None)
    if not live or not live.start_time:
        return None
    played = (now - live.start_time).total_seconds() / 60
    if played >= threshold_minutes:
        return 0
    return math.ceil(threshold_minutes - played)


def request_court(scheduled_match_id, court_id, *, threshold_minutes=PRE_ASSIGN_MIN_PLAYING_MINUTES,
                  now=None, storage=None, publish=None):
    """Assign a court chosen by an operator, pre-assigning it when it is busy.

    A busy court can only be pre-assigned once its live match has been
    playing for ``threshold_minutes``, and only for one waiting match.
    """
    storage = storage or default_storage

    match = _load_scheduled_match(storage, scheduled_match_id)
    court = _load_court(storage, court_id)

    if court.is_available:
        return manual_assign(match.id, court.id, storage=storage, publish=publish)

    if court.pre_assigned_scheduled_match_id not in (None, match.id):
        raise CourtUnavailable('Esta cancha ya está asignada a otro partido activo')
    wait = pre_assignment_wait_minutes(
        court.id, now=now, threshold_minutes=threshold_minutes, storage=storage,
    )
    if wait is None:
        raise CourtUnavailable()
    if wait > 0:
        raise CourtUnavailable(
            f'Esta cancha está en uso. Podrás pre-asignarla en {wait} minutos '
            f'(cuando lleve {threshold_minutes}+ min de juego)'
        )
    return manual_assign(match.id, court.id, pre_assign=True, storage=storage, publish=publish)


def start_from_ready(scheduled_match_id, court_id, *, storage=None, publish=None):
    """Claim a court, create the live match and mark the scheduled match playing.

    The three steps form one unit. If anything fails after the court was
    claimed, the court is released again before the error propagates.
    """
    storage = storage or default_storage
    publish = publish or default_publish

    match = _load_scheduled_match(storage, scheduled_match_id)
    if match.status != STATUS_READY:
        raise InvalidMatchState('El partido debe estar listo para iniciarse')
    _load_court(storage, court_id)

    if not storage.claim_court(court_id):
        storage.rollback()
        raise CourtUnavailable()

    events = []
    try:
        begin_play(storage, match, court_id, events)
        events.append(make_event('court_updated', storage.get_court(court_id)))
        storage.commit()
    except Exception as exc:
        storage.rollback()
        _compensate_claim(storage, court_id)
        logger.error('Could not start scheduled match %s on court %s: %s', scheduled_match_id, court_id, exc)
        raise AssignmentFailed() from exc

    logger.info('Scheduled match %s started on court %s', match.id, court_id)
    _publish_all(publish, events)
    return storage.get_match(match.match_id)


def _compensate_claim(storage, court_id):
    court = storage.get_court(court_id)
    if court and not court.is_available:
        storage.update_court(court_id, is_available=True)
        storage.commit()
        logger.warning('Released court %s after a failed start', court_id)


def start_assigned(scheduled_match_id, *, storage=None, publish=None):
    """Start a scheduled match on the court it already holds."""
    storage = storage or default_storage
    publish = publish or default_publish

    match = _load_scheduled_match(storage, scheduled_match_id)
    if match.status != STATUS_ASSIGNED or not match.court_id:
        raise InvalidMatchState('El partido no tiene cancha asignada')
    if match.pre_assigned_at:
        raise CourtUnavailable('La cancha pre-asignada aún está en uso')

    if any(live.court_id == match.court_id for live in storage.get_live_matches()):
        raise CourtUnavailable()
    court = _load_court(storage, match.court_id)
    if court.is_available and not storage.claim_court(court.id):
        storage.rollback()
        raise CourtUnavailable()

    events = []
    try:
        court = storage.get_court(match.court_id)
        live = begin_play(storage, match, match.court_id, events)
        events.append(make_event('court_updated', court))
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    logger.info('Scheduled match %s started on assigned court %s', match.id, match.court_id)
    _publish_all(publish, events)
    return live


def release_court(court_id, *, storage=None, publish=None):
    storage = storage or default_storage
    publish = publish or default_publish

    _load_court(storage, court_id)
    events = []
    try:
        court = free_court(storage, court_id, events)
        storage.commit()
    except Exception:
        storage.rollback()
        raise
    _publish_all(publish, events)
    return court


def release_orphaned_courts(*, storage=None, publish=None):
    """Free courts marked busy that no live or assigned match references."""
    storage = storage or default_storage
    publish = publish or default_publish

    active_court_ids = {m.court_id for m in storage.get_live_matches() if m.court_id}
    for match in storage.get_all_scheduled_matches(exclude_statuses=()):
        if match.court_id and match.status in (STATUS_ASSIGNED, STATUS_PLAYING):
            active_court_ids.add(match.court_id)

    released = []
    events = []
    try:
        for court in storage.get_courts():
            if court.is_available or court.id in active_court_ids:
                continue
            storage.update_court(court.id, is_available=True)
            events.append(make_event('court_updated', court))
            released.append(court.name)
        storage.commit()
    except Exception:
        storage.rollback()
        raise

    if released:
        logger.info('Released %d orphaned court(s): %s', len(released), ', '.join(released))
    _publish_all(publish, events)
    return released