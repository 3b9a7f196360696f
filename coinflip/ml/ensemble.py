"""
Ensemble Predictor - Master orchestrator combining all heuristic models.
Generates the next-outcome prediction through an accuracy-weighted vote.

Models:
  - frequency : most frequent outcome so far
  - markov_1  : most frequent successor of the last outcome
  - markov_2  : most frequent successor of the last two outcomes
  - streak    : continue short streaks, reverse long ones
"""

from config import (
    MIN_HISTORY_FOR_PREDICTION, MAX_HISTORY, PREDICTION_TARGET, PREDICTION_TARGETS,
    TARGET_PARITY, PARITY_EVEN, PARITY_ODD, OUTCOMES,
    TREND_RECENT_WINDOW, TREND_THRESHOLD, RECENT_DISPLAY_COUNT,
    is_valid_red_count, outcome_for_target, get_outcome_label,
)

from coinflip.ml.frequency_analyzer import FrequencyAnalyzer
from coinflip.ml.markov_chain import MarkovChain
from coinflip.ml.streak_analyzer import StreakAnalyzer
from coinflip.ml.confidence import ModelAccuracyTracker, weighted_vote


# ─── Trend Detector ───────────────────────────────────────────────────

class TrendDetector:
    """Compares the last few flips against the overall mean red count."""

    MESSAGES = {
        'more_red': 'Recent flips are showing more red than average.',
        'less_red': 'Recent flips are showing less red than average.',
        'stable': '',
    }

    def __init__(self, window=TREND_RECENT_WINDOW, threshold=TREND_THRESHOLD):
        self.window = window
        self.threshold = threshold

    def check(self, red_counts):
        if not red_counts:
            return {
                'trend': 'stable',
                'message': '',
                'recent_average': 0.0,
                'overall_average': 0.0,
            }

        recent = red_counts[-self.window:]
        recent_avg = sum(recent) / self.window
        overall_avg = sum(red_counts) / len(red_counts)

        if recent_avg > overall_avg + self.threshold:
            trend = 'more_red'
        elif recent_avg < overall_avg - self.threshold:
            trend = 'less_red'
        else:
            trend = 'stable'

        return {
            'trend': trend,
            'message': self.MESSAGES[trend],
            'recent_average': round(recent_avg, 2),
            'overall_average': round(overall_avg, 2),
        }


class EnsemblePredictor:
    MODEL_NAMES = ('frequency', 'markov_1', 'markov_2', 'streak')
    METHOD_LABELS = {
        'frequency': 'Most frequent',
        'markov_1': 'Markov chain (1st order)',
        'markov_2': 'Markov chain (2nd order)',
        'streak': 'Streak continuation / reversal',
    }

    def __init__(self, target=PREDICTION_TARGET, min_history=MIN_HISTORY_FOR_PREDICTION,
                 max_history=MAX_HISTORY):
        if target not in PREDICTION_TARGETS:
            raise ValueError(f'Unknown prediction target: {target!r}')
        self.target = target
        self.min_history = min_history
        self.max_history = max_history

        self.history = []       # Raw red counts
        self.frequency = FrequencyAnalyzer()
        self.markov = MarkovChain()
        self.streak = StreakAnalyzer(target=target)
        self.accuracy_tracker = ModelAccuracyTracker()
        self.trend_detector = TrendDetector()

    def _models(self):
        return (self.frequency, self.markov, self.streak)

    def _reload_models(self):
        sequence = [outcome_for_target(n, self.target) for n in self.history]
        for model in self._models():
            model.load_history(sequence)

    def full_reset(self):
        """Forget all history and model accuracy."""
        self.history = []
        self.accuracy_tracker.reset()
        self._reload_models()
        print("[RESET] Predictor cleared - fresh state")

    def load_history(self, history):
        """Replay a red-count history so accuracy weights are rebuilt from it."""
        history = list(history)
        self.history = []
        self.accuracy_tracker.reset()
        self._reload_models()
        for red_count in history:
            self.update(red_count)

    def update(self, red_count):
        """Feed a new outcome to all models.

        Models that had a prediction for this flip are scored first, so
        their accuracy weights reflect the outcome they were trying to call.
        """
        if not is_valid_red_count(red_count):
            raise ValueError(f'Red count must be an integer 0-4, got {red_count!r}')

        outcome = outcome_for_target(red_count, self.target)

        if len(self.history) >= self.min_history:
            self.accuracy_tracker.record_all(self.get_model_predictions(), outcome)

        self.history.append(red_count)
        for model in self._models():
            model.update(outcome)

        if self.max_history and len(self.history) > self.max_history:
            self.history = self.history[-self.max_history:]
            self._reload_models()

    def update_incremental(self, red_counts):
        added = 0
        for red_count in red_counts:
            self.update(red_count)
            added += 1
        return {
            'outcomes_added': added,
            'total_outcomes': len(self.history),
        }

    def undo_last(self):
        """Remove the last outcome and rebuild every model from the rest."""
        if not self.history:
            return None
        removed = self.history[-1]
        self.load_history(self.history[:-1])
        return removed

    def get_model_predictions(self):
        return {
            'frequency': self.frequency.predict(),
            'markov_1': self.markov.predict_first_order(),
            'markov_2': self.markov.predict_second_order(),
            'streak': self.streak.predict(),
        }

    def predict(self):
        """Weighted-vote prediction for the next flip, or None if too little data.

        Does not modify any state: calling it twice on the same history
        returns the same result.
        """
        if len(self.history) < self.min_history:
            return None

        predictions = self.get_model_predictions()
        active = [name for name in self.MODEL_NAMES if predictions[name] is not None]
        weights = self.accuracy_tracker.get_weights(active)

        vote = weighted_vote(predictions, weights)
        if vote is None:
            return None

        value = vote['value']
        methods = []
        for name in self.MODEL_NAMES:
            predicted = predictions[name]
            methods.append({
                'name': name,
                'label': self.METHOD_LABELS[name],
                'prediction': predicted,
                'weight': round(weights.get(name, 0.0), 4),
                'accuracy': round(self.accuracy_tracker.get_accuracy(name), 4),
                'agrees': predicted is not None and predicted == value,
            })

        trend = self.trend_detector.check(self.history)

        return {
            'value': value,
            'label': get_outcome_label(value, self.target),
            'target': self.target,
            'confidence': vote['confidence'],
            'vote_totals': vote['vote_totals'],
            'methods': methods,
            'trend': trend['trend'],
            'commentary': trend['message'],
            'patterns': {
                'average': trend['overall_average'],
                'recent': list(self.history[-RECENT_DISPLAY_COUNT:]),
            },
            'total_outcomes': len(self.history),
        }

    def _outcome_space(self):
        if self.target == TARGET_PARITY:
            return [PARITY_EVEN, PARITY_ODD]
        return OUTCOMES

    def run_test(self, red_counts):
        """Test mode: walk forward through known outcomes and report accuracy.

        A fresh predictor predicts before each outcome is fed to it, so
        nothing from the live history leaks into the test.
        """
        red_counts = list(red_counts)
        if len(red_counts) < self.min_history + 1:
            return {'error': f'Need at least {self.min_history + 1} outcomes for test mode'}

        test_predictor = EnsemblePredictor(target=self.target,
                                           min_history=self.min_history,
                                           max_history=self.max_history)
        details = []
        correct = 0
        total = 0
        model_hits = {name: 0 for name in self.MODEL_NAMES}
        model_calls = {name: 0 for name in self.MODEL_NAMES}

        for i, red_count in enumerate(red_counts):
            actual = outcome_for_target(red_count, self.target)
            prediction = test_predictor.predict()

            if prediction is not None:
                total += 1
                hit = prediction['value'] == actual
                if hit:
                    correct += 1
                for method in prediction['methods']:
                    if method['prediction'] is None:
                        continue
                    model_calls[method['name']] += 1
                    if method['prediction'] == actual:
                        model_hits[method['name']] += 1

                details.append({
                    'flip': i + 1,
                    'actual': actual,
                    'predicted': prediction['value'],
                    'confidence': prediction['confidence'],
                    'hit': hit,
                })

            test_predictor.update(red_count)

        return {
            'target': self.target,
            'total_outcomes': len(red_counts),
            'total_predictions': total,
            'correct': correct,
            'accuracy': round(correct / total * 100, 1) if total else 0,
            'model_accuracy': {
                name: (round(model_hits[name] / model_calls[name] * 100, 1)
                       if model_calls[name] else None)
                for name in self.MODEL_NAMES
            },
            'expected_random': round(100 / len(self._outcome_space()), 1),
            'details': details[-20:],
        }

    def get_model_status(self):
        """Status of all models for the dashboard."""
        predictions = self.get_model_predictions()
        active = [name for name in self.MODEL_NAMES if predictions[name] is not None]
        weights = self.accuracy_tracker.get_weights(active)

        status = {}
        for name in self.MODEL_NAMES:
            status[name] = {
                'prediction': predictions[name],
                'accuracy': round(self.accuracy_tracker.get_accuracy(name), 4),
                'observations': self.accuracy_tracker.get_observations(name),
                'weight': round(weights.get(name, 0.0), 4),
                'status': 'active' if predictions[name] is not None else 'idle',
            }

        status['target'] = self.target
        status['total_outcomes'] = len(self.history)
        status['ready'] = len(self.history) >= self.min_history
        status['outcomes_needed'] = max(0, self.min_history - len(self.history))
        status['streak'].update(self.streak.get_current_state())
        return status
