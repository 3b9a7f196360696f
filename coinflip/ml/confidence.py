"""
Confidence Engine - per-model accuracy tracking and the accuracy-weighted vote.

Every model that made a prediction gets a hit/miss recorded once the real
outcome arrives. Its hit rate becomes its voting weight. Models with no
track record start at DEFAULT_MODEL_ACCURACY (0.5) before normalization.
"""

import math
from collections import deque

from config import DEFAULT_MODEL_ACCURACY, ACCURACY_WINDOW


class ModelAccuracyTracker:
    """Rolling hit/miss record per model."""

    def __init__(self, window=ACCURACY_WINDOW):
        self.window = window
        self.model_scores = {}

    def record(self, name, predicted, actual):
        """Record whether a model's prediction matched the actual outcome."""
        if predicted is None:
            return
        scores = self.model_scores.setdefault(name, deque(maxlen=self.window))
        scores.append(1 if predicted == actual else 0)

    def record_all(self, predictions, actual):
        for name, predicted in predictions.items():
            self.record(name, predicted, actual)

    def get_accuracy(self, name):
        scores = self.model_scores.get(name)
        if not scores:
            return DEFAULT_MODEL_ACCURACY
        return sum(scores) / len(scores)

    def get_observations(self, name):
        return len(self.model_scores.get(name, ()))

    def get_weights(self, names):
        """Normalize the accuracies of `names` so they sum to 1.

        If every model has a zero hit rate the vote falls back to equal weights.
        """
        names = list(names)
        if not names:
            return {}

        raw = {name: self.get_accuracy(name) for name in names}
        total = sum(raw.values())
        if total <= 0:
            return {name: 1.0 / len(names) for name in names}
        return {name: raw[name] / total for name in names}

    def reset(self):
        self.model_scores = {}

    def get_state(self):
        """Serializable state."""
        return {name: list(scores) for name, scores in self.model_scores.items()}

    def load_state(self, state):
        """Restore from serialized state."""
        self.model_scores = {
            name: deque(scores, maxlen=self.window)
            for name, scores in (state or {}).items()
        }


def round_half_up(value):
    return int(math.floor(value + 0.5))


def weighted_vote(predictions, weights):
    """Combine model predictions into one outcome with a confidence percent.

    Args:
        predictions: dict model name → predicted outcome (None = abstain)
        weights: dict model name → weight (missing names count as 0)

    Returns:
        dict with 'value', 'confidence', 'vote_totals', or None when no
        model made a prediction.
    """
    totals = {}
    for name, predicted in predictions.items():
        if predicted is None:
            continue
        totals[predicted] = totals.get(predicted, 0.0) + weights.get(name, 0.0)

    if not totals:
        return None

    total_weight = sum(totals.values())
    # Ties go to the larger outcome
    winner = max(totals, key=lambda o: (totals[o], o))

    if total_weight > 0:
        confidence = round_half_up(totals[winner] / total_weight * 100)
    else:
        confidence = 0

    return {
        'value': winner,
        'confidence': max(0, min(100, confidence)),
        'vote_totals': {str(k): round(v, 4) for k, v in totals.items()},
    }
