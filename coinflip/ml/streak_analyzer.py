"""
Streak Analyzer - continuation / reversal model.

Short runs of the same outcome are expected to continue. Once a run
reaches STREAK_REVERSAL_LENGTH the model bets on the trend flipping:
the complement of the last outcome (4 - n for red counts, the other
label for even/odd).
"""

from config import STREAK_REVERSAL_LENGTH, PREDICTION_TARGET, complement_outcome


class StreakAnalyzer:
    def __init__(self, target=PREDICTION_TARGET, reversal_length=STREAK_REVERSAL_LENGTH):
        self.target = target
        self.reversal_length = reversal_length
        self.history = []

    def update(self, outcome):
        self.history.append(outcome)

    def load_history(self, history):
        self.history = list(history)

    def get_streak_length(self):
        if not self.history:
            return 0
        last = self.history[-1]
        length = 0
        for outcome in reversed(self.history):
            if outcome != last:
                break
            length += 1
        return length

    def predict(self):
        if not self.history:
            return None
        last = self.history[-1]
        if self.get_streak_length() >= self.reversal_length:
            return complement_outcome(last, self.target)
        return last

    def get_current_state(self):
        if not self.history:
            return {
                'status': 'collecting',
                'last_outcome': None,
                'streak_length': 0,
                'mode': None,
            }

        length = self.get_streak_length()
        return {
            'status': 'active',
            'last_outcome': self.history[-1],
            'streak_length': length,
            'mode': 'reversal' if length >= self.reversal_length else 'continuation',
        }
