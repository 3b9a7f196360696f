#!/usr/bin/env python3
"""
Ensemble Backtester - walk-forward accuracy of the predictor on real data.

This is a STANDALONE script. It does NOT modify the stored history.
It loads red counts from userdata/*.txt / *.csv (or the files given on the
command line), replays them through a fresh predictor for both prediction
targets, and prints overall and per-model hit rates.

Usage:
    python backtest.py [file ...]
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    USERDATA_DIR, TARGET_RED_COUNT, TARGET_PARITY, MIN_HISTORY_FOR_PREDICTION,
    parse_red_counts,
)
from coinflip.ml.ensemble import EnsemblePredictor


def load_file(filepath):
    """Red counts (0-4) from one file; anything else is skipped."""
    with open(filepath) as f:
        outcomes, _ = parse_red_counts(f.read())
    return outcomes


def load_userdata(paths=None):
    """Load all red counts from the given files, or from userdata/."""
    if not paths:
        if not os.path.isdir(USERDATA_DIR):
            return []
        paths = [
            os.path.join(USERDATA_DIR, name)
            for name in sorted(os.listdir(USERDATA_DIR))
            if name.lower().endswith(('.txt', '.csv')) and not name.startswith('.')
        ]

    outcomes = []
    for path in paths:
        outcomes.extend(load_file(path))
    return outcomes


def run_backtest(outcomes):
    """Print a report per prediction target. Returns the reports."""
    reports = {}
    print(f"\n{'='*60}")
    print(f"  ENSEMBLE BACKTESTER")
    print(f"  Total flips: {len(outcomes)} | Warmup: {MIN_HISTORY_FOR_PREDICTION}")
    print(f"{'='*60}\n")

    for target in (TARGET_RED_COUNT, TARGET_PARITY):
        # History cap disabled so long files are not trimmed mid-test
        report = EnsemblePredictor(target=target, max_history=None).run_test(outcomes)
        reports[target] = report
        if 'error' in report:
            print(f"  [{target}] {report['error']}")
            continue

        print(f"  Target: {target}")
        print(f"    Ensemble: {report['correct']}/{report['total_predictions']} = "
              f"{report['accuracy']:.1f}%  (random {report['expected_random']:.1f}%)")
        for name, acc in report['model_accuracy'].items():
            shown = f"{acc:.1f}%" if acc is not None else "n/a"
            print(f"    {name:<10} {shown}")
        print()

    return reports


if __name__ == '__main__':
    outcomes = load_userdata(sys.argv[1:])
    if not outcomes:
        print("ERROR: No flip data found")
        sys.exit(1)

    print(f"Loaded {len(outcomes)} flips")
    run_backtest(outcomes)
