"""
Unit Tests for HistoryStore and the vision pipeline
(Region, count_red, ResultChangeDetector, VisionAnalyzer, read_image)
"""
import pytest
import sys
import os
import io
import json

import numpy as np
from PIL import Image, ImageDraw

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config import (DEFAULT_VISION_REGIONS, TARGET_PARITY, TARGET_RED_COUNT,
                    PARITY_EVEN, PARITY_ODD)
from coinflip.session.history_store import (
    HistoryStore, SOURCE_MANUAL, SOURCE_VISION, SOURCE_IMPORT,
)
from coinflip.vision.region_sampler import (
    Region, ResultChangeDetector, count_red, is_red, regions_from_dicts, sample_region,
)
from coinflip.vision.screen_capture import VisionAnalyzer, read_image
from coinflip.ml.ensemble import EnsemblePredictor


RED = (220, 30, 30)
WHITE = (245, 245, 245)


@pytest.fixture
def store(tmp_path):
    return HistoryStore(path=str(tmp_path / 'history.json'))


def _frame(width=200, height=100, color=WHITE):
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, :] = color
    return frame


def _paint(frame, region, color=RED):
    height, width = frame.shape[:2]
    left, top, right, bottom = region.to_pixels(width, height)
    frame[top:bottom, left:right] = color
    return frame


def _frame_with_reds(red_count, regions=None):
    regions = regions or regions_from_dicts(DEFAULT_VISION_REGIONS)
    frame = _frame()
    for region in regions[:red_count]:
        _paint(frame, region)
    return frame


# ═══════════════════════════════════════════════════════════════
# HistoryStore Tests
# ═══════════════════════════════════════════════════════════════

class TestHistoryStore:
    def test_empty(self, store):
        assert len(store) == 0
        assert store.get_red_counts() == []
        assert store.get_accuracy_stats() == {'correct': 0, 'total': 0, 'accuracy': 0.0}

    def test_add_record(self, store):
        record = store.add_record(2)
        assert record['flip'] == 1
        assert record['outcome'] == ['red', 'red', 'white', 'white']
        assert record['red_count'] == 2
        assert record['parity'] == PARITY_EVEN
        assert record['source'] == SOURCE_MANUAL
        assert record['is_from_vision'] is False
        assert record['prediction_at_flip'] is None

    def test_vision_source(self, store):
        record = store.add_record(3, source=SOURCE_VISION)
        assert record['is_from_vision'] is True
        assert record['is_imported'] is False
        assert record['parity'] == PARITY_ODD

    def test_flip_numbers_increment(self, store):
        for n in [0, 1, 2]:
            store.add_record(n)
        assert [r['flip'] for r in store.get_records()] == [1, 2, 3]

    def test_invalid_values(self, store):
        for bad in (5, -1, '2', None, True):
            with pytest.raises(ValueError):
                store.add_record(bad)
        with pytest.raises(ValueError):
            store.add_record(2, source='telepathy')
        assert len(store) == 0

    def test_persists_to_disk(self, store):
        store.add_record(4)
        store.add_record(1)
        reloaded = HistoryStore(path=store.path)
        assert reloaded.get_red_counts() == [4, 1]
        with open(store.path, encoding='utf-8') as f:
            assert len(json.load(f)) == 2

    def test_trims_to_max_history(self, tmp_path):
        store = HistoryStore(path=str(tmp_path / 'h.json'), max_history=3)
        for n in [0, 1, 2, 3, 4]:
            store.add_record(n)
        assert store.get_red_counts() == [2, 3, 4]
        assert [r['flip'] for r in store.get_records()] == [3, 4, 5]
        assert store.add_record(0)['flip'] == 6

    def test_add_many(self, store):
        added = store.add_many([1, 2, 3])
        assert len(added) == 3
        assert all(r['is_imported'] for r in added)
        assert all(r['source'] == SOURCE_IMPORT for r in added)
        assert store.get_red_counts() == [1, 2, 3]

    def test_undo_last(self, store):
        assert store.undo_last() is None
        store.add_record(1)
        store.add_record(3)
        removed = store.undo_last()
        assert removed['red_count'] == 3
        assert store.get_red_counts() == [1]
        assert HistoryStore(path=store.path).get_red_counts() == [1]

    def test_reset(self, store):
        store.add_record(1)
        assert store.reset() == 1
        assert len(store) == 0
        assert not os.path.exists(store.path)

    def test_recent_records_newest_first(self, store):
        store.add_many([0, 1, 2, 3])
        assert [r['red_count'] for r in store.get_recent_records(2)] == [3, 2]

    def test_accuracy_stats(self, store):
        store.add_record(2, prediction={'value': 2, 'target': TARGET_RED_COUNT, 'confidence': 50})
        store.add_record(1, prediction={'value': 3, 'target': TARGET_RED_COUNT, 'confidence': 75})
        store.add_record(3, prediction={'value': PARITY_ODD, 'target': TARGET_PARITY, 'confidence': 60})
        store.add_record(4)
        stats = store.get_accuracy_stats()
        assert stats == {'correct': 2, 'total': 3, 'accuracy': 66.7}

    def test_corrupt_file_loads_empty(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{not json', encoding='utf-8')
        assert len(HistoryStore(path=str(path))) == 0

    def test_unexpected_format_loads_empty(self, tmp_path):
        path = tmp_path / 'dict.json'
        path.write_text('{"flips": []}', encoding='utf-8')
        assert len(HistoryStore(path=str(path))) == 0

    @pytest.mark.parametrize('payload', [
        '[7, 8]',
        '[{"red_count": 9}]',
        '[{"flip": 1}]',
        '[{"red_count": true}]',
        '[{"red_count": 2, "flip": "one"}]',
        '[{"red_count": 2, "prediction_at_flip": 3}]',
    ])
    def test_malformed_records_skipped(self, tmp_path, payload):
        path = tmp_path / 'bad.json'
        path.write_text(payload, encoding='utf-8')
        store = HistoryStore(path=str(path))
        assert store.get_red_counts() == []

        # Must still be usable end to end (as at server startup)
        EnsemblePredictor().load_history(store.get_red_counts())
        assert store.get_accuracy_stats()['total'] == 0
        assert store.add_record(1)['flip'] == 1

    def test_valid_records_kept_beside_malformed(self, tmp_path):
        path = tmp_path / 'mixed.json'
        path.write_text(json.dumps([
            {'flip': 1, 'red_count': 2},
            'garbage',
            {'flip': 2, 'red_count': 5},
            {'flip': 3, 'red_count': 4},
        ]), encoding='utf-8')
        store = HistoryStore(path=str(path))
        assert store.get_red_counts() == [2, 4]
        assert store.add_record(0)['flip'] == 4

    def test_failed_save_keeps_memory(self, store, monkeypatch):
        def fail(*args, **kwargs):
            raise OSError('disk full')

        monkeypatch.setattr(os, 'replace', fail)
        record = store.add_record(3)
        assert record['red_count'] == 3
        assert store.get_red_counts() == [3]
        assert store.undo_last()['red_count'] == 3

    def test_reset_when_delete_fails(self, store, monkeypatch):
        store.add_many([1, 2])

        def fail(path):
            raise OSError('permission denied')

        monkeypatch.setattr(os, 'remove', fail)
        assert store.reset() == 2
        assert len(store) == 0
        # File overwritten with an empty history instead
        assert HistoryStore(path=store.path).get_red_counts() == []


# ═══════════════════════════════════════════════════════════════
# Region / sampling Tests
# ═══════════════════════════════════════════════════════════════

class TestRegion:
    def test_point_region(self):
        assert Region(25, 25).to_pixels(100, 100) == (25, 25, 26, 26)

    def test_box_region(self):
        assert Region(50, 50, 10, 20).to_pixels(100, 100) == (45, 40, 55, 60)

    def test_clamped_at_edge(self):
        assert Region(100, 100, 10, 10).to_pixels(50, 50) == (47, 47, 50, 50)

    def test_from_dict(self):
        region = Region.from_dict({'x': 10, 'y': '20', 'width': 5})
        assert region == Region(10.0, 20.0, 5.0, 0.0)
        assert region.to_dict() == {'x': 10.0, 'y': 20.0, 'width': 5.0, 'height': 0.0}

    def test_from_dict_invalid(self):
        with pytest.raises(ValueError):
            Region.from_dict({'y': 10})
        with pytest.raises(ValueError):
            Region.from_dict({'x': 150, 'y': 10})
        with pytest.raises(ValueError):
            Region.from_dict({'x': 'left', 'y': 10})


class TestColourThreshold:
    def test_is_red(self):
        assert is_red((151, 99, 99))
        assert not is_red((150, 50, 50))
        assert not is_red((200, 100, 50))
        assert not is_red((200, 50, 100))
        assert not is_red(WHITE)

    def test_sample_region_average(self):
        frame = _frame(100, 100, WHITE)
        frame[:, :50] = RED
        r, g, b = sample_region(frame, Region(50, 50, 20, 20))
        assert r == pytest.approx((220 + 245) / 2)
        assert g == pytest.approx((30 + 245) / 2)
        # Half-red region does not read as a red coin
        assert not is_red((r, g, b))

    @pytest.mark.parametrize('red_count', [0, 1, 2, 3, 4])
    def test_count_red(self, red_count):
        regions = regions_from_dicts(DEFAULT_VISION_REGIONS)
        count, samples = count_red(_frame_with_reds(red_count, regions), regions)
        assert count == red_count
        assert len(samples) == 4
        assert sum(s['is_red'] for s in samples) == red_count

    def test_sample_colour_string(self):
        regions = [Region(50, 50, 10, 10)]
        frame = _paint(_frame(), regions[0])
        _, samples = count_red(frame, regions)
        assert samples[0]['color'] == 'rgb(220,30,30)'

    def test_count_red_rejects_bad_frame(self):
        with pytest.raises(ValueError):
            count_red(np.zeros((10, 10)), regions_from_dicts(DEFAULT_VISION_REGIONS))


# ═══════════════════════════════════════════════════════════════
# Change detection / VisionAnalyzer Tests
# ═══════════════════════════════════════════════════════════════

class TestResultChangeDetector:
    def test_first_reading_not_reported(self):
        detector = ResultChangeDetector()
        assert detector.observe(2) is None
        assert detector.last_result == 2

    def test_reports_only_changes(self):
        detector = ResultChangeDetector()
        readings = [2, 2, 3, 3, 1, 1, 1, 4]
        reported = [detector.observe(r) for r in readings]
        assert reported == [None, None, 3, None, 1, None, None, 4]

    def test_reset(self):
        detector = ResultChangeDetector()
        detector.observe(1)
        detector.reset()
        assert detector.observe(3) is None


class TestVisionAnalyzer:
    def test_process_frame(self):
        analyzer = VisionAnalyzer()
        assert analyzer.process_frame(_frame_with_reds(1)) is None
        assert analyzer.process_frame(_frame_with_reds(1)) is None
        assert analyzer.process_frame(_frame_with_reds(3)) == 3
        assert len(analyzer.last_samples) == 4

    def test_run_reports_changes(self):
        frames = [_frame_with_reds(n) for n in [0, 0, 2, 2, 4]]
        queue = list(frames)
        results = []

        analyzer = VisionAnalyzer(frame_source=lambda: queue.pop(0), interval=0)
        analyzer.run(lambda count, samples: results.append(count),
                     should_stop=lambda: not queue,
                     sleep=lambda _: None)
        assert results == [2, 4]

    def test_run_with_frame_source_override(self):
        queue = [_frame_with_reds(n) for n in [1, 3]]
        results = []

        analyzer = VisionAnalyzer(interval=0)
        analyzer.run(lambda count, samples: results.append(count),
                     should_stop=lambda: not queue,
                     sleep=lambda _: None,
                     frame_source=lambda: queue.pop(0))
        assert results == [3]
        assert analyzer.frame_source is None

    def test_set_regions_resets_detector(self):
        analyzer = VisionAnalyzer()
        analyzer.process_frame(_frame_with_reds(2))
        analyzer.set_regions([{'x': 50, 'y': 50, 'width': 10, 'height': 10}])
        assert analyzer.detector.last_result is None
        assert analyzer.get_regions() == [{'x': 50.0, 'y': 50.0, 'width': 10.0, 'height': 10.0}]

    def test_set_regions_invalid(self):
        analyzer = VisionAnalyzer()
        with pytest.raises(ValueError):
            analyzer.set_regions([{'x': 500, 'y': 50}])


class TestReadImage:
    def test_reads_png(self):
        img = Image.new('RGB', (200, 100), WHITE)
        draw = ImageDraw.Draw(img)
        # Coins at the two top regions
        draw.rectangle([40, 20, 60, 30], fill=RED)
        draw.rectangle([140, 20, 160, 30], fill=RED)
        buf = io.BytesIO()
        img.save(buf, format='PNG')
        buf.seek(0)

        frame = read_image(buf)
        assert frame.shape == (100, 200, 3)
        count, _ = count_red(frame, regions_from_dicts(DEFAULT_VISION_REGIONS))
        assert count == 2
