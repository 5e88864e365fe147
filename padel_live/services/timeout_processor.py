"""Periodic sweep that flags scheduled matches whose check-in window has closed.

Every tick loads the non-terminal scheduled matches of all tournaments,
computes each one's deadline (planned local time plus tolerance, in the
tournament's timezone) and, once it has passed, looks at check-in:

* only pair 1 fully present -> pending DQF, pair 1 is the default winner
* only pair 2 fully present -> pending DQF, pair 2 is the default winner
* both pairs present        -> nothing, the match goes ahead normally
* neither pair present      -> nothing, left for an administrator

A pending DQF is never resolved here; an administrator confirms it (see
``padel_live.services.adjudication``). Problems with a single match are logged
and that match is skipped; one bad row never stops the sweep.
"""
import logging
import threading
from collections import namedtuple
from datetime import timedelta

from padel_live.app import socketio
from padel_live.events import make_event, publish as default_publish
from padel_live.models import (
    DEFAULT_TIMEZONE, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_PLAYING,
)
from padel_live.services import presence
from padel_live.services.timezones import (
    InvalidPlannedTime, UnknownTimezone, combine_date_and_time, format_for_display,
)
from padel_live.storage import storage as default_storage
from padel_live.time_utils import as_naive_utc, utcnow_naive

logger = logging.getLogger(__name__)

TOLERANCE_MINUTES = 15
SWEEP_INTERVAL_SECONDS = 60
BACKFILL_GUARD = timedelta(hours=2)

SKIPPED_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_PLAYING)

# Per-match decisions
NOT_DUE = 'not_due'
NO_PLANNED_TIME = 'no_planned_time'
BACKFILLED = 'backfilled'
ALREADY_FLAGGED = 'already_flagged'
BOTH_PRESENT = 'both_present'
NEITHER_PRESENT = 'neither_present'
FLAGGED = 'flagged'
ERROR = 'error'

SweepReport = namedtuple('SweepReport', 'evaluated flagged skipped errors decisions')


class MatchEvaluationError(Exception):
    pass


class TimeoutProcessor:

    def __init__(self, storage=None, publish=None, *, tolerance_minutes=TOLERANCE_MINUTES,
                 backfill_guard=BACKFILL_GUARD, default_timezone=DEFAULT_TIMEZONE, clock=utcnow_naive):
        self.storage = storage or default_storage
        self.publish = publish or default_publish
        self.tolerance = timedelta(minutes=tolerance_minutes)
        self.backfill_guard = backfill_guard
        self.default_timezone = default_timezone
        self.clock = clock
        self._running = threading.Lock()

    @classmethod
    def from_config(cls, app_config, **kwargs):
        return cls(
            tolerance_minutes=app_config.get('CHECK_IN_TOLERANCE_MINUTES', TOLERANCE_MINUTES),
            backfill_guard=timedelta(minutes=app_config.get('BACKFILL_GUARD_MINUTES', 120)),
            default_timezone=app_config.get('DEFAULT_TOURNAMENT_TIMEZONE', DEFAULT_TIMEZONE),
            **kwargs,
        )

    def run_sweep(self, now=None):
        """Evaluate every pending scheduled match once.

        Returns a ``SweepReport``, or None when a previous sweep is still
        running and this one was skipped.
        """
        if not self._running.acquire(blocking=False):
            logger.warning('Timeout sweep still running; skipping this tick')
            return None
        try:
            return self._sweep(as_naive_utc(now) if now else self.clock())
        finally:
            self._running.release()

    def _sweep(self, now):
        matches = self.storage.get_all_scheduled_matches(exclude_statuses=SKIPPED_STATUSES)
        logger.info('Timeout sweep: evaluating %d scheduled match(es)', len(matches))

        timezone_cache = {}
        decisions = {}
        for match in matches:
            try:
                decisions[match.id] = self._evaluate(match, now, timezone_cache)
            except (MatchEvaluationError, UnknownTimezone, InvalidPlannedTime) as exc:
                logger.warning('Skipping scheduled match %s: %s', match.id, exc)
                self.storage.rollback()
                decisions[match.id] = ERROR
            except Exception:
                logger.warning('Scheduled match %s could not be evaluated', match.id, exc_info=True)
                self.storage.rollback()
                decisions[match.id] = ERROR

        flagged = sum(1 for d in decisions.values() if d == FLAGGED)
        errors = sum(1 for d in decisions.values() if d == ERROR)
        report = SweepReport(
            evaluated=len(decisions),
            flagged=flagged,
            skipped=len(decisions) - flagged - errors,
            errors=errors,
            decisions=decisions,
        )
        logger.info(
            'Timeout sweep done: %d evaluated, %d flagged, %d skipped, %d errors',
            report.evaluated, report.flagged, report.skipped, report.errors,
        )
        return report

    def _timezone_for(self, tournament_id, cache):
        if tournament_id not in cache:
            tournament = self.storage.get_tournament(tournament_id)
            if not tournament:
                raise MatchEvaluationError(f'tournament {tournament_id} not found')
            cache[tournament_id] = tournament.timezone or self.default_timezone
        return cache[tournament_id]

    def deadline_for(self, match, tz_name):
        match_instant = combine_date_and_time(match.day, match.planned_time, tz_name)
        return match_instant + self.tolerance

    def _is_backfill(self, match, deadline):
        created_at = match.created_at
        if created_at is None or created_at < deadline:
            return False
        return created_at - deadline <= self.backfill_guard

    def _evaluate(self, match, now, timezone_cache):
        if not match.planned_time:
            return NO_PLANNED_TIME

        tz_name = self._timezone_for(match.tournament_id, timezone_cache)
        deadline = self.deadline_for(match, tz_name)
        logger.debug(
            'Scheduled match %s: deadline %s (%s), now %s',
            match.id, format_for_display(deadline, tz_name), tz_name,
            format_for_display(now, tz_name),
        )

        if self._is_backfill(match, deadline):
            return BACKFILLED
        if now < deadline:
            return NOT_DUE
        if match.pending_dqf:
            return ALREADY_FLAGGED

        summary = presence.summarize(match, self.storage.get_scheduled_match_players(match.id))
        pair1_ok = presence.pair1_confirmed(summary)
        pair2_ok = presence.pair2_confirmed(summary)

        if pair1_ok and pair2_ok:
            return BOTH_PRESENT
        if not pair1_ok and not pair2_ok:
            return NEITHER_PRESENT

        winner_pair_id = match.pair1_id if pair1_ok else match.pair2_id
        self._flag_pending_dqf(match, winner_pair_id)
        return FLAGGED

    def _flag_pending_dqf(self, match, winner_pair_id):
        try:
            updated = self.storage.update_scheduled_match(
                match.id, pending_dqf=True, default_winner_pair_id=winner_pair_id,
            )
            self.storage.commit()
        except Exception as exc:
            self.storage.rollback()
            raise MatchEvaluationError(f'could not flag pending DQF: {exc}') from exc

        logger.info(
            'Scheduled match %s pending DQF; default winner would be pair %s',
            match.id, winner_pair_id,
        )
        self.publish(make_event('match_pending_dqf', updated))


def start_timeout_processor(app, processor=None):
    """Run the sweep on a background task every configured interval.

    The loop is a single task, so sweeps never overlap; the processor's own
    lock also guards on-demand sweeps.
    """
    processor = processor or app.extensions.get('timeout_processor') or TimeoutProcessor.from_config(app.config)
    interval = app.config.get('TIMEOUT_SWEEP_INTERVAL_SECONDS', SWEEP_INTERVAL_SECONDS)

    def _loop():
        logger.info('Starting timeout processor (every %ss)', interval)
        while True:
            with app.app_context():
                try:
                    processor.run_sweep()
                except Exception:
                    logger.exception('Timeout sweep failed')
            socketio.sleep(interval)

    socketio.start_background_task(_loop)
    return processor
