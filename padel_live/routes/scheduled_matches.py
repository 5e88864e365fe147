from flask import Blueprint, current_app, request, jsonify

from padel_live.errors import InvalidMatchState, InvalidPayload, ScheduledMatchNotFound
from padel_live.models import STATUS_ASSIGNED, STATUS_READY
from padel_live.routes.helpers import _coerce_bool, _json_body, _parse_positive_int, _require_int
from padel_live.services import adjudication, check_in, court_assignment, live_matches, scheduling
from padel_live.storage import storage

scheduled_matches_bp = Blueprint('scheduled_matches', __name__)


@scheduled_matches_bp.route('/<int:tournament_id>', methods=['GET'])
def list_scheduled_matches(tournament_id):
    day = None
    raw_day = request.args.get('day')
    if raw_day:
        day = scheduling.parse_day(raw_day).date()
    matches = storage.get_scheduled_matches_by_tournament(tournament_id, day=day)
    if _coerce_bool(request.args.get('pending_dqf')):
        matches = [m for m in matches if m.pending_dqf]
    return jsonify({'scheduled_matches': [m.to_dict() for m in matches]})


@scheduled_matches_bp.route('', methods=['POST'])
def create_scheduled_match():
    data = _json_body()
    tournament_id = _require_int(data, 'tournament_id', 'Tournament ID is required')
    pair1_id = _require_int(data, 'pair1_id', 'Both pairs are required')
    pair2_id = _require_int(data, 'pair2_id', 'Both pairs are required')
    if not data.get('day'):
        raise InvalidPayload('Day is required')

    match = scheduling.schedule_match(
        tournament_id,
        data.get('day'),
        pair1_id,
        pair2_id,
        data.get('planned_time'),
        category_id=_parse_positive_int(data.get('category_id')),
        format=data.get('format'),
        court_id=_parse_positive_int(data.get('court_id')),
        notes=str(data.get('notes') or '').strip(),
    )
    return jsonify({'scheduled_match': match.to_dict()}), 201


@scheduled_matches_bp.route('/<int:scheduled_match_id>', methods=['DELETE'])
def delete_scheduled_match(scheduled_match_id):
    scheduling.delete_scheduled_match(scheduled_match_id)
    return jsonify({'message': 'Partido programado eliminado'})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/players', methods=['GET'])
def get_players(scheduled_match_id):
    if not storage.get_scheduled_match(scheduled_match_id):
        raise ScheduledMatchNotFound()
    players = storage.get_scheduled_match_players(scheduled_match_id)
    return jsonify({'players': [p.to_dict() for p in players]})


def _presence_response(row, match):
    return jsonify({'player': row.to_dict(), 'scheduled_match': match.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/check-in', methods=['POST'])
def check_in_player(scheduled_match_id):
    data = _json_body()
    player_id = _require_int(data, 'player_id', 'Player ID is required')
    checked_in_by = str(data.get('checked_in_by') or '').strip() or None
    row, match = check_in.check_in(scheduled_match_id, player_id, checked_in_by)
    return _presence_response(row, match)


@scheduled_matches_bp.route('/<int:scheduled_match_id>/check-out', methods=['POST'])
def check_out_player(scheduled_match_id):
    data = _json_body()
    player_id = _require_int(data, 'player_id', 'Player ID is required')
    row, match = check_in.check_out(scheduled_match_id, player_id)
    return _presence_response(row, match)


@scheduled_matches_bp.route('/<int:scheduled_match_id>/reset-status', methods=['POST'])
def reset_player_status(scheduled_match_id):
    data = _json_body()
    player_id = _require_int(data, 'player_id', 'Player ID is required')
    row, match = check_in.reset_status(scheduled_match_id, player_id)
    return _presence_response(row, match)


@scheduled_matches_bp.route('/<int:scheduled_match_id>/auto-assign', methods=['POST'])
def auto_assign_court(scheduled_match_id):
    match = court_assignment.auto_assign(scheduled_match_id)
    return jsonify({'scheduled_match': match.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/assign-court', methods=['POST'])
def assign_court(scheduled_match_id):
    data = _json_body()
    court_id = _require_int(data, 'court_id', 'Court ID is required')
    match = court_assignment.request_court(
        scheduled_match_id,
        court_id,
        threshold_minutes=current_app.config.get('PRE_ASSIGN_MIN_PLAYING_MINUTES', 40),
    )
    return jsonify({
        'scheduled_match': match.to_dict(),
        'pre_assigned': bool(match.pre_assigned_at),
    })


@scheduled_matches_bp.route('/<int:scheduled_match_id>/start', methods=['POST'])
def start_match(scheduled_match_id):
    scheduled = storage.get_scheduled_match(scheduled_match_id)
    if not scheduled:
        raise ScheduledMatchNotFound()

    if scheduled.status == STATUS_ASSIGNED:
        live = court_assignment.start_assigned(scheduled_match_id)
    elif scheduled.status == STATUS_READY:
        data = _json_body()
        court_id = _parse_positive_int(data.get('court_id')) or scheduled.planned_court_id
        if not court_id:
            raise InvalidPayload('Court ID is required')
        live = court_assignment.start_from_ready(scheduled_match_id, court_id)
    else:
        raise InvalidMatchState('El partido debe estar listo o tener cancha asignada para iniciarse')
    return jsonify({'match': live.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/assign-and-start', methods=['POST'])
def assign_and_start(scheduled_match_id):
    data = _json_body()
    court_id = _require_int(data, 'court_id', 'Court ID is required')
    live = court_assignment.start_from_ready(scheduled_match_id, court_id)
    return jsonify({'match': live.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/dqf', methods=['POST'])
def confirm_dqf(scheduled_match_id):
    match, live = adjudication.confirm_default_win(scheduled_match_id)
    return jsonify({'scheduled_match': match.to_dict(), 'match': live.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/cancel', methods=['POST'])
def cancel(scheduled_match_id):
    data = _json_body()
    reason = str(data.get('reason') or '').strip()
    match = adjudication.cancel_scheduled_match(scheduled_match_id, reason)
    return jsonify({'scheduled_match': match.to_dict()})


@scheduled_matches_bp.route('/<int:scheduled_match_id>/reactivate', methods=['POST'])
def reactivate(scheduled_match_id):
    match = live_matches.reactivate(scheduled_match_id)
    return jsonify({'scheduled_match': match.to_dict()})
