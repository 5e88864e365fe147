from datetime import datetime
from types import SimpleNamespace

import pytest
from padel_live.app import create_app, db
from padel_live.models import Club, Court, Pair, Player, Tournament

MATCH_DAY = datetime(2025, 10, 20)


class RecordingPublisher:
    """Collects published events instead of emitting them."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [event['type'] for event in self.events]

    def of_type(self, event_type):
        return [event for event in self.events if event['type'] == event_type]

    def clear(self):
        self.events = []


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def seed(app):
    """A club with two courts and a tournament with four pairs."""
    club = Club(name='Club Padel Norte')
    db.session.add(club)
    db.session.flush()

    tournament = Tournament(name='Open Primavera', club_id=club.id, timezone='America/Santiago')
    players = [Player(name=f'Jugador {i}') for i in range(1, 9)]
    db.session.add(tournament)
    db.session.add_all(players)
    db.session.flush()

    pairs = [
        Pair(tournament_id=tournament.id, player1_id=players[i].id,
             player2_id=players[i + 1].id, category_id=1)
        for i in range(0, 8, 2)
    ]
    courts = [Court(name='Cancha 1', club_id=club.id), Court(name='Cancha 2', club_id=club.id)]
    db.session.add_all(pairs + courts)
    db.session.commit()
    return SimpleNamespace(club=club, tournament=tournament, players=players, pairs=pairs, courts=courts)


@pytest.fixture
def make_scheduled_match(seed, publisher):
    from padel_live.services.scheduling import schedule_match

    def _make(pair_a=0, pair_b=1, planned_time='10:00', day=MATCH_DAY, **kwargs):
        return schedule_match(
            seed.tournament.id, day, seed.pairs[pair_a].id, seed.pairs[pair_b].id,
            planned_time, publish=publisher, **kwargs,
        )

    return _make


@pytest.fixture
def check_in_pair(publisher):
    from padel_live.services.check_in import check_in

    def _check_in(scheduled_match, pair):
        for player_id in (pair.player1_id, pair.player2_id):
            check_in(scheduled_match.id, player_id, 'mesa', publish=publisher)

    return _check_in
