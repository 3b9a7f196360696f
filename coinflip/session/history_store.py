"""
History Store - Persistent flip history (a single JSON blob on disk),
prediction accuracy stats and record bookkeeping.
"""

import os
import json
from datetime import datetime

from config import (
    HISTORY_PATH, MAX_HISTORY, PREDICTION_TARGET,
    is_valid_red_count, get_coin_labels, get_parity, outcome_for_target,
)

SOURCE_MANUAL = 'manual'
SOURCE_VISION = 'vision'
SOURCE_IMPORT = 'import'
SOURCES = (SOURCE_MANUAL, SOURCE_VISION, SOURCE_IMPORT)


class HistoryStore:
    def __init__(self, path=HISTORY_PATH, max_history=MAX_HISTORY):
        self.path = path
        self.max_history = max_history
        self.records = self._load()

    def _load(self):
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"[History] Could not read {self.path}: {e} - starting empty")
            return []
        if not isinstance(data, list):
            print(f"[History] Unexpected history format in {self.path} - starting empty")
            return []

        records = [r for r in data if self._is_valid_record(r)]
        if len(records) < len(data):
            print(f"[History] Skipped {len(data) - len(records)} malformed records in {self.path}")
        return records

    @staticmethod
    def _is_valid_record(record):
        if not isinstance(record, dict) or not is_valid_red_count(record.get('red_count')):
            return False
        flip = record.get('flip')
        if flip is not None and (not isinstance(flip, int) or isinstance(flip, bool)):
            return False
        prediction = record.get('prediction_at_flip')
        return prediction is None or isinstance(prediction, dict)

    def _save(self):
        """Write the whole history atomically."""
        directory = os.path.dirname(self.path)
        tmp_path = self.path + '.tmp'
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self.records, f, indent=2, ensure_ascii=False, default=str)
            os.replace(tmp_path, self.path)
        except OSError as e:
            print(f"[History] Failed to save: {e}")

    def _next_flip_number(self):
        if not self.records:
            return 1
        return self.records[-1].get('flip', len(self.records)) + 1

    def _build_record(self, red_count, source, prediction):
        if not is_valid_red_count(red_count):
            raise ValueError(f'Red count must be an integer 0-4, got {red_count!r}')
        if source not in SOURCES:
            raise ValueError(f'Unknown record source: {source!r}')

        record = {
            'flip': self._next_flip_number(),
            'outcome': get_coin_labels(red_count),
            'red_count': red_count,
            'parity': get_parity(red_count),
            'timestamp': datetime.now().isoformat(timespec='seconds'),
            'source': source,
            'is_from_vision': source == SOURCE_VISION,
            'is_imported': source == SOURCE_IMPORT,
            'prediction_at_flip': None,
        }
        if prediction:
            record['prediction_at_flip'] = {
                'value': prediction.get('value'),
                'target': prediction.get('target', PREDICTION_TARGET),
                'confidence': prediction.get('confidence', 0),
            }
        return record

    def add_record(self, red_count, source=SOURCE_MANUAL, prediction=None):
        """Append one flip, trimming to the last max_history flips."""
        record = self._build_record(red_count, source, prediction)
        self.records.append(record)
        self._trim()
        self._save()
        return record

    def add_many(self, red_counts, source=SOURCE_IMPORT):
        """Append several flips with a single write. Returns the new records."""
        added = []
        for red_count in red_counts:
            record = self._build_record(red_count, source, None)
            self.records.append(record)
            added.append(record)
        self._trim()
        self._save()
        return added

    def _trim(self):
        if self.max_history and len(self.records) > self.max_history:
            self.records = self.records[-self.max_history:]

    def undo_last(self):
        """Remove and return the last record, or None when empty."""
        if not self.records:
            return None
        removed = self.records.pop()
        self._save()
        return removed

    def reset(self):
        """Delete the whole history, including the file."""
        count = len(self.records)
        self.records = []
        if os.path.exists(self.path):
            try:
                os.remove(self.path)
            except OSError as e:
                # Overwrite instead so the old flips do not come back on restart
                print(f"[History] Could not delete {self.path}: {e}")
                self._save()
        print(f"[RESET] Cleared {count} flips from history")
        return count

    def get_records(self):
        return list(self.records)

    def get_recent_records(self, n=15):
        """Most recent first, as the history panel lists them."""
        return list(reversed(self.records[-n:]))

    def get_red_counts(self):
        return [r['red_count'] for r in self.records]

    def get_accuracy_stats(self):
        """How often the prediction shown before a flip was right."""
        scored = [r for r in self.records if r.get('prediction_at_flip')]
        if not scored:
            return {'correct': 0, 'total': 0, 'accuracy': 0.0}

        correct = 0
        for r in scored:
            pred = r['prediction_at_flip']
            actual = outcome_for_target(r['red_count'], pred.get('target', PREDICTION_TARGET))
            if actual == pred.get('value'):
                correct += 1

        total = len(scored)
        return {
            'correct': correct,
            'total': total,
            'accuracy': round(correct / total * 100, 1),
        }

    def __len__(self):
        return len(self.records)
