from flask import Blueprint, request, jsonify

from padel_live.routes.helpers import _parse_positive_int
from padel_live.services import court_assignment
from padel_live.storage import storage

courts_bp = Blueprint('courts', __name__)


@courts_bp.route('', methods=['GET'])
def get_courts():
    club_id = _parse_positive_int(request.args.get('club_id'))
    if club_id:
        courts = storage.get_courts_by_club(club_id)
    else:
        courts = storage.get_courts()
    return jsonify({'courts': [c.to_dict() for c in courts]})


@courts_bp.route('/<int:court_id>/release', methods=['POST'])
def release_court(court_id):
    court = court_assignment.release_court(court_id)
    return jsonify({'court': court.to_dict()})


@courts_bp.route('/release-orphaned', methods=['POST'])
def release_orphaned():
    released = court_assignment.release_orphaned_courts()
    return jsonify({
        'released': released,
        'message': f'{len(released)} cancha(s) liberada(s)',
    })
