"""
Markov Chain Model - First and second order transition tables.
Predicts the next outcome from what has followed the current state
(last outcome, or last two outcomes) within a recent window.
"""

from collections import defaultdict, Counter

from config import MARKOV_WINDOW


class MarkovChain:
    def __init__(self, window=MARKOV_WINDOW):
        self.window = window
        self.history = []

    def update(self, outcome):
        self.history.append(outcome)

    def load_history(self, history):
        self.history = list(history)

    def _recent(self):
        if self.window:
            return self.history[-self.window:]
        return self.history

    def get_transition_table(self, order=1):
        """Counts of successors keyed by the preceding state.

        order=1 keys are single outcomes, order=2 keys are (prev, current) tuples.
        """
        data = self._recent()
        table = defaultdict(Counter)
        for i in range(order, len(data)):
            state = data[i - 1] if order == 1 else tuple(data[i - order:i])
            table[state][data[i]] += 1
        return table

    @staticmethod
    def _most_likely(successors):
        # Ties go to the larger outcome
        return max(successors, key=lambda o: (successors[o], o))

    def predict_first_order(self):
        """Most frequent successor of the last outcome, or None if unseen."""
        data = self._recent()
        if len(data) < 2:
            return None

        table = self.get_transition_table(order=1)
        current = data[-1]
        if current not in table:
            return None
        return self._most_likely(table[current])

    def predict_second_order(self):
        """Most frequent successor of the last two outcomes, or None if unseen."""
        data = self._recent()
        if len(data) < 3:
            return None

        table = self.get_transition_table(order=2)
        key = tuple(data[-2:])
        if key not in table:
            return None
        return self._most_likely(table[key])

    def get_summary(self):
        def _serialize(table):
            return {
                str(state): dict(successors)
                for state, successors in table.items()
            }

        return {
            'window': self.window,
            'observed': len(self._recent()),
            'first_order': _serialize(self.get_transition_table(1)),
            'second_order': _serialize(self.get_transition_table(2)),
            'prediction_first_order': self.predict_first_order(),
            'prediction_second_order': self.predict_second_order(),
        }
