"""
Configuration constants for the 4-Coin Flip Prediction System.
Single source of truth for all tunable parameters.
"""

import os
import re

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ─── Game Layout ─────────────────────────────────────────────────────
# Each flip shows 4 coins, each either red or white.
# An outcome is the number of red coins (0-4).
COINS_PER_FLIP = 4
OUTCOMES = list(range(COINS_PER_FLIP + 1))   # [0, 1, 2, 3, 4]
COIN_RED = 'red'
COIN_WHITE = 'white'

# Even/odd reframing of the red count
PARITY_EVEN = 'even'
PARITY_ODD = 'odd'
PARITY_LABELS = {PARITY_EVEN: 'Chẵn', PARITY_ODD: 'Lẻ'}

# What the ensemble predicts: the raw red count or its parity
TARGET_RED_COUNT = 'red_count'
TARGET_PARITY = 'parity'
PREDICTION_TARGETS = (TARGET_RED_COUNT, TARGET_PARITY)
PREDICTION_TARGET = TARGET_RED_COUNT

# ─── History ─────────────────────────────────────────────────────────
MIN_HISTORY_FOR_PREDICTION = 10     # Earlier revisions used 5
MAX_HISTORY = 100                   # Keep only the last 100 flips
RECENT_DISPLAY_COUNT = 5            # "Last 5 flips" card

# ─── Models ──────────────────────────────────────────────────────────
MARKOV_WINDOW = 20                  # Transition tables only see the last 20 outcomes
STREAK_REVERSAL_LENGTH = 3          # Streak of 3+ identical outcomes → expect reversal

# ─── Accuracy-Weighted Vote ──────────────────────────────────────────
DEFAULT_MODEL_ACCURACY = 0.5        # Weight for a model with no track record
ACCURACY_WINDOW = 50                # Rolling window of hit/miss per model

# ─── Trend Commentary ────────────────────────────────────────────────
TREND_RECENT_WINDOW = 5             # Compare last 5 flips...
TREND_THRESHOLD = 0.5               # ...against overall mean ± 0.5 red

# ─── Statistics ──────────────────────────────────────────────────────
CHI_SQUARE_MIN_FLIPS = 10
SIGNIFICANCE_LEVEL = 0.05

# ─── Vision Capture ──────────────────────────────────────────────────
# A sampled region counts as a red coin when its average colour
# passes all three channel thresholds.
RED_MIN_R = 150
RED_MAX_G = 100
RED_MAX_B = 100
VISION_POLL_INTERVAL = 0.5          # Seconds between frame samples

# Regions in percent of the captured frame: x, y = centre; width, height = size.
# width/height of 0 samples a single pixel.
DEFAULT_VISION_REGIONS = [
    {'x': 25, 'y': 25, 'width': 6, 'height': 6},
    {'x': 75, 'y': 25, 'width': 6, 'height': 6},
    {'x': 25, 'y': 75, 'width': 6, 'height': 6},
    {'x': 75, 'y': 75, 'width': 6, 'height': 6},
]

# ─── File Paths ──────────────────────────────────────────────────────
DATA_DIR = os.path.join(BASE_DIR, 'data')
HISTORY_PATH = os.path.join(DATA_DIR, 'coin_flip_history.json')
USERDATA_DIR = os.path.join(BASE_DIR, 'userdata')

# ─── Server Settings ─────────────────────────────────────────────────
HOST = '0.0.0.0'
PORT = 5060
DEBUG = False
SECRET_KEY = 'coin-flip-prediction-system-2024'
ASYNC_MODE = os.environ.get('COINFLIP_ASYNC_MODE', 'eventlet')


# ─── Outcome Helpers ─────────────────────────────────────────────────
def is_valid_red_count(value):
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= COINS_PER_FLIP


def get_coin_labels(red_count):
    """Coin faces for a flip, red coins first."""
    return [COIN_RED if i < red_count else COIN_WHITE for i in range(COINS_PER_FLIP)]


def get_parity(red_count):
    return PARITY_EVEN if red_count % 2 == 0 else PARITY_ODD


def outcome_for_target(red_count, target=PREDICTION_TARGET):
    """Map a red count onto the symbol the predictor works with."""
    if target == TARGET_PARITY:
        return get_parity(red_count)
    return red_count


def complement_outcome(outcome, target=PREDICTION_TARGET):
    """Opposite outcome used by the streak reversal model."""
    if target == TARGET_PARITY:
        return PARITY_ODD if outcome == PARITY_EVEN else PARITY_EVEN
    return COINS_PER_FLIP - outcome


def parse_red_count(value):
    """Red count from user input (int, integral float or digit string), else None."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (ValueError, TypeError):
        return None
    if isinstance(value, float) and value != number:
        return None
    if 0 <= number <= COINS_PER_FLIP:
        return number
    return None


def parse_red_counts(text):
    """Red counts from text separated by newlines, commas, semicolons or spaces.

    Returns (red_counts, skipped_token_count).
    """
    outcomes = []
    skipped = 0
    for token in re.split(r'[\s,;]+', text):
        if not token:
            continue
        number = parse_red_count(token)
        if number is None:
            skipped += 1
        else:
            outcomes.append(number)
    return outcomes, skipped


def get_outcome_label(outcome, target=PREDICTION_TARGET):
    if target == TARGET_PARITY:
        return PARITY_LABELS.get(outcome, str(outcome))
    return f'{outcome} Đỏ'
