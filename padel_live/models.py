import json
import uuid
from dataclasses import dataclass
from sqlalchemy.orm import validates
from padel_live.app import db
from padel_live.time_utils import utcnow_naive

DEFAULT_TIMEZONE = 'America/Santiago'

# Scheduled match lifecycle
STATUS_SCHEDULED = 'scheduled'
STATUS_READY = 'ready'
STATUS_ASSIGNED = 'assigned'
STATUS_PLAYING = 'playing'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'

SCHEDULED_MATCH_STATUSES = frozenset({
    STATUS_SCHEDULED, STATUS_READY, STATUS_ASSIGNED,
    STATUS_PLAYING, STATUS_COMPLETED, STATUS_CANCELLED,
})
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})
PRE_PLAYING_STATUSES = frozenset({STATUS_SCHEDULED, STATUS_READY, STATUS_ASSIGNED})

OUTCOME_DEFAULT = 'default'
OUTCOME_CANCELLED = 'cancelled'

# Live match lifecycle
MATCH_PLAYING = 'playing'
MATCH_FINISHED = 'finished'


def _safe_json(raw_value, fallback=None):
    if fallback is None:
        fallback = {}
    if not raw_value:
        return fallback
    try:
        return json.loads(raw_value)
    except (TypeError, ValueError):
        return fallback


def _iso(value):
    return value.isoformat() if value else None


def new_access_token():
    return uuid.uuid4().hex


def empty_score():
    return {'sets': [], 'current_set': 0, 'current_points': [0, 0]}


@dataclass(frozen=True)
class DefaultOutcome:
    winner_pair_id: int
    reason: str = ''


@dataclass(frozen=True)
class CancelledOutcome:
    reason: str = ''


class Club(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class Tournament(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    club_id = db.Column(db.Integer, db.ForeignKey('club.id'), nullable=False)
    timezone = db.Column(db.String(64), default=DEFAULT_TIMEZONE)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    club = db.relationship('Club', backref='tournaments')

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'club_id': self.club_id,
            'timezone': self.timezone or DEFAULT_TIMEZONE,
            'created_at': _iso(self.created_at),
        }


class Player(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class Pair(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    player1_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    player2_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    category_id = db.Column(db.Integer, nullable=True)

    player1 = db.relationship('Player', foreign_keys=[player1_id])
    player2 = db.relationship('Player', foreign_keys=[player2_id])

    def to_dict(self):
        return {
            'id': self.id, 'tournament_id': self.tournament_id,
            'player1_id': self.player1_id, 'player2_id': self.player2_id,
            'category_id': self.category_id,
        }


class Court(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    club_id = db.Column(db.Integer, db.ForeignKey('club.id'), nullable=False)
    is_available = db.Column(db.Boolean, default=True, nullable=False)
    stream_url = db.Column(db.String(500), nullable=True)
    # Match waiting for this court to be freed; no FK to avoid a table cycle.
    pre_assigned_scheduled_match_id = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'club_id': self.club_id,
            'is_available': self.is_available, 'stream_url': self.stream_url,
            'pre_assigned_scheduled_match_id': self.pre_assigned_scheduled_match_id,
        }


class ScheduledMatch(db.Model):
    """A planned pairing of two pairs on a calendar day, optionally at a local time."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    day = db.Column(db.DateTime, nullable=False)  # only the calendar date is meaningful
    planned_time = db.Column(db.String(5), nullable=True)  # "HH:MM", tournament local time
    pair1_id = db.Column(db.Integer, db.ForeignKey('pair.id'), nullable=False)
    pair2_id = db.Column(db.Integer, db.ForeignKey('pair.id'), nullable=False)
    category_id = db.Column(db.Integer, nullable=True)
    format = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), default=STATUS_SCHEDULED, nullable=False)
    # court_id: the court held, waited for or played on. The court chosen
    # when scheduling is only planned_court_id until it is assigned.
    planned_court_id = db.Column(db.Integer, db.ForeignKey('court.id'), nullable=True)
    court_id = db.Column(db.Integer, db.ForeignKey('court.id'), nullable=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=True)
    outcome = db.Column(db.String(20), nullable=True)  # default, cancelled
    outcome_reason = db.Column(db.String(200), nullable=True)
    default_winner_pair_id = db.Column(db.Integer, nullable=True)
    pending_dqf = db.Column(db.Boolean, default=False, nullable=False)
    pre_assigned_at = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, default='')
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    tournament = db.relationship('Tournament', backref='scheduled_matches')
    players = db.relationship('ScheduledMatchPlayer', backref='scheduled_match',
                              cascade='all, delete-orphan',
                              order_by='ScheduledMatchPlayer.id')

    @validates('status')
    def _check_status(self, key, value):
        if value not in SCHEDULED_MATCH_STATUSES:
            raise ValueError(f'Unknown scheduled match status: {value!r}')
        return value

    @property
    def outcome_detail(self):
        if self.outcome == OUTCOME_DEFAULT and self.default_winner_pair_id is not None:
            return DefaultOutcome(self.default_winner_pair_id, self.outcome_reason or '')
        if self.outcome == OUTCOME_CANCELLED:
            return CancelledOutcome(self.outcome_reason or '')
        return None

    def opponent_of(self, pair_id):
        return self.pair2_id if pair_id == self.pair1_id else self.pair1_id

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'day': self.day.date().isoformat() if self.day else None,
            'planned_time': self.planned_time,
            'pair1_id': self.pair1_id,
            'pair2_id': self.pair2_id,
            'category_id': self.category_id,
            'format': self.format,
            'status': self.status,
            'planned_court_id': self.planned_court_id,
            'court_id': self.court_id,
            'match_id': self.match_id,
            'outcome': self.outcome,
            'outcome_reason': self.outcome_reason,
            'default_winner_pair_id': self.default_winner_pair_id,
            'pending_dqf': bool(self.pending_dqf),
            'pre_assigned_at': _iso(self.pre_assigned_at),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'players': [p.to_dict() for p in self.players],
        }


class ScheduledMatchPlayer(db.Model):
    """One player's presence record within one scheduled match."""
    id = db.Column(db.Integer, primary_key=True)
    scheduled_match_id = db.Column(db.Integer, db.ForeignKey('scheduled_match.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    pair_id = db.Column(db.Integer, db.ForeignKey('pair.id'), nullable=False)
    is_present = db.Column(db.Boolean, nullable=True)  # None = not yet marked
    check_in_time = db.Column(db.DateTime, nullable=True)
    checked_in_by = db.Column(db.String(120), nullable=True)

    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'scheduled_match_id': self.scheduled_match_id,
            'player_id': self.player_id,
            'pair_id': self.pair_id,
            'is_present': self.is_present,
            'check_in_time': _iso(self.check_in_time),
            'checked_in_by': self.checked_in_by,
            'player': self.player.to_dict() if self.player else None,
        }


class Match(db.Model):
    """Live match, created the moment a scheduled match starts playing."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    court_id = db.Column(db.Integer, db.ForeignKey('court.id'), nullable=True)
    pair1_id = db.Column(db.Integer, db.ForeignKey('pair.id'), nullable=False)
    pair2_id = db.Column(db.Integer, db.ForeignKey('pair.id'), nullable=False)
    category_id = db.Column(db.Integer, nullable=True)
    format = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), default=MATCH_PLAYING, nullable=False)
    score_json = db.Column(db.Text, default='{}')
    winner_id = db.Column(db.Integer, nullable=True)
    start_time = db.Column(db.DateTime, default=lambda: utcnow_naive())
    end_time = db.Column(db.DateTime, nullable=True)
    access_token = db.Column(db.String(64), default=new_access_token, unique=True)
    notes = db.Column(db.Text, default='')

    court = db.relationship('Court', backref='matches')

    @property
    def score(self):
        return _safe_json(self.score_json, empty_score())

    @score.setter
    def score(self, value):
        self.score_json = json.dumps(value or empty_score())

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'court_id': self.court_id,
            'pair1_id': self.pair1_id,
            'pair2_id': self.pair2_id,
            'category_id': self.category_id,
            'format': self.format,
            'status': self.status,
            'score': self.score,
            'winner_id': self.winner_id,
            'start_time': _iso(self.start_time),
            'end_time': _iso(self.end_time),
            'access_token': self.access_token,
            'notes': self.notes,
        }


class Result(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False)
    winner_id = db.Column(db.Integer, nullable=True)
    loser_id = db.Column(db.Integer, nullable=True)
    score_json = db.Column(db.Text, default='{}')
    duration_minutes = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    match = db.relationship('Match', backref='results')

    @property
    def score(self):
        return _safe_json(self.score_json, empty_score())

    @score.setter
    def score(self, value):
        self.score_json = json.dumps(value or empty_score())

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'winner_id': self.winner_id,
            'loser_id': self.loser_id,
            'score': self.score,
            'duration_minutes': self.duration_minutes,
            'created_at': _iso(self.created_at),
        }
