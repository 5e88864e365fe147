"""Persistence seam used by the tournament desk services.

Services talk to a ``Storage`` rather than to the session directly so that the
sweep and the court resolver can run against any engine that honours the same
contract. ``SqlStorage`` is the Flask-SQLAlchemy implementation; all of its
writes join the current session transaction and only ``commit`` ends it.
"""
from datetime import datetime, time, timedelta

from padel_live.app import db
from padel_live.models import (
    Court, Match, Pair, Result, ScheduledMatch, ScheduledMatchPlayer, Tournament,
    MATCH_PLAYING,
)


class Storage:
    """Operations the core needs from persistence."""

    def get_all_scheduled_matches(self, exclude_statuses=()):
        raise NotImplementedError

    def get_scheduled_match(self, scheduled_match_id, for_update=False):
        raise NotImplementedError

    def get_scheduled_match_players(self, scheduled_match_id):
        raise NotImplementedError

    def update_scheduled_match_player(self, scheduled_match_id, player_id, **changes):
        raise NotImplementedError

    def update_scheduled_match(self, scheduled_match_id, **changes):
        raise NotImplementedError

    def get_scheduled_matches_by_tournament(self, tournament_id, day=None):
        raise NotImplementedError

    def get_scheduled_match_by_match_id(self, match_id):
        raise NotImplementedError

    def get_tournament(self, tournament_id):
        raise NotImplementedError

    def get_pair(self, pair_id):
        raise NotImplementedError

    def get_courts(self):
        raise NotImplementedError

    def get_courts_by_club(self, club_id, only_available=False):
        raise NotImplementedError

    def get_court(self, court_id):
        raise NotImplementedError

    def update_court(self, court_id, **changes):
        raise NotImplementedError

    def claim_court(self, court_id):
        """Mark a free court busy; return False when someone else got it first."""
        raise NotImplementedError

    def create_match(self, **data):
        raise NotImplementedError

    def create_result(self, **data):
        raise NotImplementedError

    def get_match(self, match_id):
        raise NotImplementedError

    def update_match(self, match_id, **changes):
        raise NotImplementedError

    def get_live_matches(self):
        raise NotImplementedError

    def delete_result_for_match(self, match_id):
        raise NotImplementedError

    def create_scheduled_match(self, player_rows, **data):
        raise NotImplementedError

    def delete_scheduled_match(self, scheduled_match_id):
        raise NotImplementedError

    def commit(self):
        raise NotImplementedError

    def rollback(self):
        raise NotImplementedError


class SqlStorage(Storage):

    def get_all_scheduled_matches(self, exclude_statuses=()):
        query = ScheduledMatch.query
        if exclude_statuses:
            query = query.filter(ScheduledMatch.status.notin_(list(exclude_statuses)))
        return query.order_by(ScheduledMatch.id.asc()).all()

    def get_scheduled_match(self, scheduled_match_id, for_update=False):
        if for_update:
            # Row lock held until commit; serializes presence writes per match.
            return db.session.get(ScheduledMatch, scheduled_match_id,
                                  with_for_update=True, populate_existing=True)
        return db.session.get(ScheduledMatch, scheduled_match_id)

    def get_scheduled_match_players(self, scheduled_match_id):
        return ScheduledMatchPlayer.query.filter_by(
            scheduled_match_id=scheduled_match_id,
        ).order_by(ScheduledMatchPlayer.id.asc()).populate_existing().all()

    def update_scheduled_match_player(self, scheduled_match_id, player_id, **changes):
        row = ScheduledMatchPlayer.query.filter_by(
            scheduled_match_id=scheduled_match_id, player_id=player_id,
        ).first()
        if not row:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        db.session.flush()
        return row

    def update_scheduled_match(self, scheduled_match_id, **changes):
        match = self.get_scheduled_match(scheduled_match_id)
        if not match:
            return None
        for key, value in changes.items():
            setattr(match, key, value)
        db.session.flush()
        return match

    def get_scheduled_matches_by_tournament(self, tournament_id, day=None):
        query = ScheduledMatch.query.filter_by(tournament_id=tournament_id)
        if day is not None:
            start = datetime.combine(day, time.min)
            query = query.filter(
                ScheduledMatch.day >= start,
                ScheduledMatch.day < start + timedelta(days=1),
            )
        return query.order_by(ScheduledMatch.day.asc(), ScheduledMatch.planned_time.asc(),
                              ScheduledMatch.id.asc()).all()

    def get_scheduled_match_by_match_id(self, match_id):
        return ScheduledMatch.query.filter_by(match_id=match_id).first()

    def get_tournament(self, tournament_id):
        return db.session.get(Tournament, tournament_id)

    def get_pair(self, pair_id):
        return db.session.get(Pair, pair_id)

    def get_courts(self):
        return Court.query.order_by(Court.id.asc()).all()

    def get_courts_by_club(self, club_id, only_available=False):
        query = Court.query.filter_by(club_id=club_id)
        if only_available:
            query = query.filter(Court.is_available.is_(True))
        return query.order_by(Court.id.asc()).all()

    def get_court(self, court_id):
        return db.session.get(Court, court_id, populate_existing=True)

    def update_court(self, court_id, **changes):
        court = self.get_court(court_id)
        if not court:
            return None
        for key, value in changes.items():
            setattr(court, key, value)
        db.session.flush()
        return court

    def claim_court(self, court_id):
        db.session.flush()
        claimed = Court.query.filter(
            Court.id == court_id,
            Court.is_available.is_(True),
        ).update({'is_available': False}, synchronize_session=False)
        if claimed:
            # Bring the in-session copy in line with the conditional UPDATE.
            self.get_court(court_id)
        return claimed == 1

    def create_match(self, **data):
        match = Match(**data)
        db.session.add(match)
        db.session.flush()
        return match

    def create_result(self, **data):
        result = Result(**data)
        db.session.add(result)
        db.session.flush()
        return result

    def get_match(self, match_id):
        return db.session.get(Match, match_id)

    def update_match(self, match_id, **changes):
        match = self.get_match(match_id)
        if not match:
            return None
        for key, value in changes.items():
            setattr(match, key, value)
        db.session.flush()
        return match

    def get_live_matches(self):
        return Match.query.filter_by(status=MATCH_PLAYING).all()

    def delete_result_for_match(self, match_id):
        return Result.query.filter_by(match_id=match_id).delete(synchronize_session=False)

    def create_scheduled_match(self, player_rows, **data):
        match = ScheduledMatch(**data)
        match.players = [ScheduledMatchPlayer(**row) for row in player_rows]
        db.session.add(match)
        db.session.flush()
        return match

    def delete_scheduled_match(self, scheduled_match_id):
        match = self.get_scheduled_match(scheduled_match_id)
        if not match:
            return False
        db.session.delete(match)
        db.session.flush()
        return True

    def commit(self):
        db.session.commit()

    def rollback(self):
        db.session.rollback()


storage = SqlStorage()
