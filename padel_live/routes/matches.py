from flask import Blueprint, jsonify

from padel_live.errors import InvalidPayload, MatchNotFound
from padel_live.routes.helpers import _json_body, _require_int
from padel_live.services import live_matches
from padel_live.storage import storage

matches_bp = Blueprint('matches', __name__)


@matches_bp.route('/live', methods=['GET'])
def get_live_matches():
    return jsonify({'matches': [m.to_dict() for m in storage.get_live_matches()]})


@matches_bp.route('/<int:match_id>', methods=['GET'])
def get_match(match_id):
    match = storage.get_match(match_id)
    if not match:
        raise MatchNotFound()
    return jsonify({'match': match.to_dict()})


@matches_bp.route('/<int:match_id>/finish', methods=['POST'])
def finish_match(match_id):
    data = _json_body()
    winner_pair_id = _require_int(data, 'winner_pair_id', 'Winner pair ID and sets are required')
    sets = data.get('sets')
    if not sets:
        raise InvalidPayload('Winner pair ID and sets are required')
    match, result = live_matches.finish_match(match_id, winner_pair_id, sets)
    return jsonify({'match': match.to_dict(), 'result': result.to_dict()})
