"""
Frequency Analyzer - most-frequent-outcome model plus the distribution
statistics shown on the dashboard.

Observed red-count frequencies are compared against the binomial
distribution of 4 fair coins with a chi-square goodness-of-fit test.
"""

import numpy as np
from scipy import stats
from collections import Counter

from config import (
    COINS_PER_FLIP, OUTCOMES, PARITY_EVEN, PARITY_ODD,
    CHI_SQUARE_MIN_FLIPS, SIGNIFICANCE_LEVEL, RECENT_DISPLAY_COUNT,
    get_parity,
)


class FrequencyAnalyzer:
    def __init__(self):
        self.history = []
        self.frequency_counts = Counter()

    def update(self, outcome):
        self.history.append(outcome)
        self.frequency_counts[outcome] += 1

    def load_history(self, history):
        self.history = list(history)
        self.frequency_counts = Counter(self.history)

    def predict(self):
        """Most frequent outcome so far. Ties go to the larger outcome."""
        if not self.frequency_counts:
            return None
        return max(self.frequency_counts,
                   key=lambda o: (self.frequency_counts[o], o))

    # ─── Red-count statistics ─────────────────────────────────────────
    # These only make sense when the history holds red counts (0-4).

    def get_observed_distribution(self):
        """Percent of flips per red count."""
        total = len(self.history)
        if total == 0:
            return {k: 0.0 for k in OUTCOMES}
        return {
            k: round(self.frequency_counts.get(k, 0) / total * 100, 2)
            for k in OUTCOMES
        }

    def get_theoretical_distribution(self):
        """Binomial C(4,k)/16 as percent."""
        pmf = stats.binom.pmf(OUTCOMES, COINS_PER_FLIP, 0.5)
        return {k: round(float(p) * 100, 2) for k, p in zip(OUTCOMES, pmf)}

    def get_chi_square_result(self):
        """Goodness of fit of observed red counts against fair coins."""
        n = len(self.history)
        if n < CHI_SQUARE_MIN_FLIPS:
            return {'statistic': 0.0, 'p_value': 1.0, 'significant': False}

        observed = np.array([self.frequency_counts.get(k, 0) for k in OUTCOMES],
                            dtype=np.float64)
        expected = stats.binom.pmf(OUTCOMES, COINS_PER_FLIP, 0.5) * n

        chi2, p_value = stats.chisquare(observed, expected)
        return {
            'statistic': round(float(chi2), 4),
            'p_value': round(float(p_value), 4),
            'significant': bool(p_value < SIGNIFICANCE_LEVEL),
        }

    def get_average(self):
        if not self.history:
            return 0.0
        return round(float(np.mean(self.history)), 2)

    def get_recent(self, n=RECENT_DISPLAY_COUNT):
        return list(self.history[-n:])

    def get_parity_distribution(self):
        even = sum(1 for v in self.history if get_parity(v) == PARITY_EVEN)
        odd = len(self.history) - even
        total = len(self.history)
        return {
            PARITY_EVEN: even,
            PARITY_ODD: odd,
            'even_pct': round(even / total * 100, 1) if total else 0.0,
            'odd_pct': round(odd / total * 100, 1) if total else 0.0,
        }

    def get_distribution_chart(self):
        """Observed vs theoretical percent per red count, one row per outcome."""
        theoretical = self.get_theoretical_distribution()
        observed = self.get_observed_distribution()
        return [
            {'red_count': k, 'theoretical': theoretical[k], 'observed': observed[k]}
            for k in OUTCOMES
        ]

    def get_summary(self):
        return {
            'total_flips': len(self.history),
            'most_frequent': self.predict(),
            'average': self.get_average(),
            'recent': self.get_recent(),
            'distribution': self.get_distribution_chart(),
            'chi_square': self.get_chi_square_result(),
            'parity': self.get_parity_distribution(),
        }
