from flask import Blueprint, current_app, jsonify

timeouts_bp = Blueprint('timeouts', __name__)


@timeouts_bp.route('/run', methods=['POST'])
def run_sweep():
    processor = current_app.extensions['timeout_processor']
    report = processor.run_sweep()
    if report is None:
        return jsonify({'error': 'A timeout sweep is already running'}), 409
    return jsonify({
        'evaluated': report.evaluated,
        'flagged': report.flagged,
        'skipped': report.skipped,
        'errors': report.errors,
        'decisions': {str(k): v for k, v in report.decisions.items()},
    })
