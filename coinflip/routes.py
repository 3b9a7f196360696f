"""
HTTP Routes - Health check and read-only JSON API, plus still-image analysis.
"""

from flask import Blueprint, jsonify, request

from coinflip import socketio_handlers as handlers
from coinflip.session.history_store import SOURCE_VISION
from coinflip.vision.region_sampler import count_red
from coinflip.vision.screen_capture import read_image

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    return jsonify({'service': '4-Coin Flip Predictor', 'flips': len(handlers.history)})


@main_bp.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': '4-Coin Flip Predictor'})


@main_bp.route('/api/history')
def get_history():
    limit = request.args.get('limit', type=int)
    records = handlers.history.get_recent_records(limit) if limit else handlers.history.get_records()
    return jsonify({
        'records': records,
        'total': len(handlers.history),
        'accuracy': handlers.history.get_accuracy_stats(),
    })


@main_bp.route('/api/statistics')
def get_statistics():
    return jsonify(handlers.get_statistics())


@main_bp.route('/api/prediction')
def get_prediction():
    return jsonify({
        'prediction': handlers.predictor.predict(),
        'model_status': handlers.predictor.get_model_status(),
    })


@main_bp.route('/api/vision/analyze', methods=['POST'])
def analyze_image():
    """Count red coins in an uploaded screenshot using the current regions.

    Send form field record=1 to also log the result as a vision flip.
    """
    upload = request.files.get('image')
    if upload is None:
        return jsonify({'error': 'No image uploaded (expected form field "image").'}), 400

    try:
        frame = read_image(upload.stream)
    except OSError as e:
        return jsonify({'error': f'Could not read image: {e}'}), 400

    red_count, samples = count_red(frame, handlers.vision.regions)
    response = {'red_count': red_count, 'samples': samples}

    if request.form.get('record') in ('1', 'true', 'yes'):
        response['result'] = handlers.record_result(red_count, SOURCE_VISION)

    return jsonify(response)
