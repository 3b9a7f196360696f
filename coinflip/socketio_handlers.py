"""
SocketIO Event Handlers - Real-time WebSocket events for the dashboard.
Handles flip input, predictions, history management, test mode and
screen-capture vision.
"""

import traceback

from flask_socketio import emit
from flask import request
from coinflip import socketio

from config import (
    MIN_HISTORY_FOR_PREDICTION, get_outcome_label, outcome_for_target,
    parse_red_count, parse_red_counts,
)

from coinflip.ml.ensemble import EnsemblePredictor
from coinflip.ml.frequency_analyzer import FrequencyAnalyzer
from coinflip.session.history_store import (
    HistoryStore, SOURCE_MANUAL, SOURCE_VISION, SOURCE_IMPORT,
)
from coinflip.vision.screen_capture import ScreenCapture, VisionAnalyzer

# Global instances
history = HistoryStore()
predictor = EnsemblePredictor()
vision = VisionAnalyzer()

predictor.load_history(history.get_red_counts())
print(f"[Startup] Loaded {len(history)} flips from history")

# Track current state
current_state = {
    'vision_active': False,
    'vision_sid': None,
    'vision_generation': 0,     # bumped on every start/stop
}


def get_statistics():
    """Distribution statistics over the stored red counts."""
    analyzer = FrequencyAnalyzer()
    analyzer.load_history(history.get_red_counts())
    return analyzer.get_summary()


def get_snapshot():
    """Everything the dashboard needs to render from scratch."""
    return {
        'history': history.get_records(),
        'prediction': predictor.predict(),
        'accuracy': history.get_accuracy_stats(),
        'statistics': get_statistics(),
        'model_status': predictor.get_model_status(),
        'vision_active': current_state['vision_active'],
        'regions': vision.get_regions(),
    }


def record_result(red_count, source):
    """Store a flip together with the prediction shown before it, then re-predict."""
    prediction_before = predictor.predict()
    record = history.add_record(red_count, source=source, prediction=prediction_before)

    # Rebuild from the stored (trimmed) history so model state always matches disk
    predictor.load_history(history.get_red_counts())
    next_prediction = predictor.predict()

    hit = None
    if prediction_before:
        hit = record['prediction_at_flip']['value'] == outcome_for_target(
            red_count, prediction_before['target'])

    return {
        'record': record,
        'hit': hit,
        'next_prediction': next_prediction,
        'accuracy': history.get_accuracy_stats(),
        'statistics': get_statistics(),
        'model_status': predictor.get_model_status(),
        'total_flips': len(history),
    }


@socketio.on('connect')
def handle_connect():
    emit('connected', {
        'message': 'Connected to 4-Coin Flip Predictor',
        **get_snapshot(),
    })


@socketio.on('add_result')
def handle_add_result(data):
    """Manually log the red count of the latest flip."""
    data = data or {}
    red_count = parse_red_count(data.get('red_count'))
    if red_count is None:
        emit('error', {'message': 'Invalid result. Enter a red count from 0 to 4.'})
        return

    response = record_result(red_count, SOURCE_MANUAL)
    emit('result_added', response)


@socketio.on('get_prediction')
def handle_get_prediction():
    """Get the next prediction without submitting a result."""
    prediction = predictor.predict()
    needed = max(0, MIN_HISTORY_FOR_PREDICTION - len(predictor.history))
    emit('prediction_result', {
        'prediction': prediction,
        'outcomes_needed': needed,
        'message': '' if prediction else f'Not enough data to predict yet ({needed} more flips needed).',
    })


@socketio.on('undo_result')
def handle_undo_result():
    """Undo the last logged flip."""
    removed = history.undo_last()
    if removed is None:
        emit('error', {'message': 'No results to undo.'})
        return

    predictor.load_history(history.get_red_counts())

    emit('result_undone', {
        'removed': removed,
        'prediction': predictor.predict(),
        'accuracy': history.get_accuracy_stats(),
        'statistics': get_statistics(),
        'model_status': predictor.get_model_status(),
        'remaining_flips': len(history),
    })


@socketio.on('reset_history')
def handle_reset_history():
    """Delete the whole flip history and start fresh."""
    cleared = history.reset()
    predictor.full_reset()

    emit('history_reset', {
        'message': f'Cleared {cleared} flips. Fresh start.',
        'cleared': cleared,
        'model_status': predictor.get_model_status(),
    })


@socketio.on('import_data')
def handle_import_data(data):
    """Bulk-append historical red counts to the history."""
    raw_text = (data or {}).get('text', '')
    if not raw_text.strip():
        emit('error', {'message': 'No data provided.'})
        return

    outcomes, skipped = parse_red_counts(raw_text)
    if not outcomes:
        emit('error', {'message': 'No valid results (0-4) found in data.'})
        return

    history.add_many(outcomes, source=SOURCE_IMPORT)
    predictor.load_history(history.get_red_counts())
    print(f"[import_data] Imported {len(outcomes)} results, skipped {skipped}")

    emit('import_complete', {
        'imported': len(outcomes),
        'skipped': skipped,
        'total_flips': len(history),
        'prediction': predictor.predict(),
        'statistics': get_statistics(),
        'model_status': predictor.get_model_status(),
        'message': f'Imported {len(outcomes)} results. History now holds {len(history)} flips.',
    })


@socketio.on('run_test')
def handle_run_test(data):
    """Test mode: walk-forward accuracy report over a pasted dataset."""
    raw_text = (data or {}).get('text', '')
    if not raw_text.strip():
        emit('error', {'message': 'No test data provided.'})
        return

    outcomes, _ = parse_red_counts(raw_text)
    required = MIN_HISTORY_FOR_PREDICTION + 1
    if len(outcomes) < required:
        emit('error', {'message': f'Need at least {required} results for test. Got {len(outcomes)}.'})
        return

    emit('test_complete', predictor.run_test(outcomes))


@socketio.on('set_regions')
def handle_set_regions(data):
    """Replace the screen regions sampled for each coin."""
    regions = (data or {}).get('regions')
    if not regions or not isinstance(regions, list):
        emit('error', {'message': 'Provide a non-empty list of regions.'})
        return

    try:
        vision.set_regions(regions)
    except ValueError as e:
        emit('error', {'message': str(e)})
        return

    emit('regions_updated', {'regions': vision.get_regions()})


def _vision_loop(sid, generation):
    """Poll the screen until this run is stopped or superseded by a newer start."""
    def _is_current():
        return current_state['vision_active'] and current_state['vision_generation'] == generation

    def _on_result(red_count, samples):
        response = record_result(red_count, SOURCE_VISION)
        response['samples'] = samples
        print(f"[Vision] Detected {get_outcome_label(red_count)}")
        socketio.emit('result_added', response, to=sid)

    try:
        with ScreenCapture() as capture:
            vision.run(_on_result,
                       should_stop=lambda: not _is_current(),
                       sleep=socketio.sleep,
                       frame_source=capture.read)
    except Exception as e:
        print(f"[Vision] ERROR: {e}")
        traceback.print_exc()
        if _is_current():
            current_state['vision_active'] = False
            current_state['vision_sid'] = None
            socketio.emit('error', {'message': f'Screen capture failed: {e}'}, to=sid)
            socketio.emit('vision_stopped', {'reason': 'error'}, to=sid)
    print(f"[Vision] Capture loop {generation} finished")


@socketio.on('start_vision')
def handle_start_vision():
    """Start sampling the screen; every change in red count is logged."""
    if current_state['vision_active']:
        emit('error', {'message': 'Vision capture is already running.'})
        return

    current_state['vision_generation'] += 1
    current_state['vision_active'] = True
    current_state['vision_sid'] = request.sid
    socketio.start_background_task(_vision_loop, request.sid, current_state['vision_generation'])

    emit('vision_started', {'regions': vision.get_regions()})


@socketio.on('stop_vision')
def handle_stop_vision():
    if not current_state['vision_active']:
        emit('error', {'message': 'Vision capture is not running.'})
        return

    # A sleeping loop sees the new generation and exits even if capture restarts
    current_state['vision_generation'] += 1
    current_state['vision_active'] = False
    current_state['vision_sid'] = None
    emit('vision_stopped', {'reason': 'user'})


@socketio.on('get_status')
def handle_get_status():
    """Get current system status."""
    emit('status_update', {
        'total_flips': len(history),
        'accuracy': history.get_accuracy_stats(),
        'model_status': predictor.get_model_status(),
        'vision_active': current_state['vision_active'],
        'regions': vision.get_regions(),
    })
