"""
Screen Capture - grabs frames from the screen with mss, loads still images
with Pillow, and runs the polling loop that turns frames into flip results.
"""

import time

import mss
import numpy as np
from PIL import Image

from config import VISION_POLL_INTERVAL, DEFAULT_VISION_REGIONS
from coinflip.vision.region_sampler import (
    ResultChangeDetector, count_red, regions_from_dicts,
)


class ScreenCapture:
    """Grabs RGB frames of a monitor (or a box on it)."""

    def __init__(self, monitor_index=1, screen_box=None):
        self.monitor_index = monitor_index
        self.screen_box = screen_box  # dict for mss: top, left, width, height
        self.sct = None

    def open(self):
        self.sct = mss.mss()
        if self.screen_box is None:
            mon = self.sct.monitors[self.monitor_index]
            self.screen_box = {
                'top': mon['top'], 'left': mon['left'],
                'width': mon['width'], 'height': mon['height'],
            }
        return self

    def read(self):
        if self.sct is None:
            self.open()
        shot = self.sct.grab(self.screen_box)
        return np.array(Image.frombytes('RGB', shot.size, shot.rgb))

    def release(self):
        if self.sct is not None:
            self.sct.close()
            self.sct = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()


def read_image(source):
    """Load a still image (path or file object) as an RGB frame."""
    with Image.open(source) as img:
        return np.array(img.convert('RGB'))


class VisionAnalyzer:
    """Samples frames and reports a new red count whenever it changes."""

    def __init__(self, frame_source=None, regions=None, interval=VISION_POLL_INTERVAL):
        self.frame_source = frame_source
        self.regions = regions_from_dicts(regions or DEFAULT_VISION_REGIONS)
        self.interval = interval
        self.detector = ResultChangeDetector()
        self.last_samples = []

    def set_regions(self, regions):
        self.regions = regions_from_dicts(regions)
        self.detector.reset()

    def get_regions(self):
        return [r.to_dict() for r in self.regions]

    def process_frame(self, frame):
        """Returns the new red count if it changed since the last frame, else None."""
        red_count, samples = count_red(frame, self.regions)
        self.last_samples = samples
        return self.detector.observe(red_count)

    def run(self, on_result, should_stop, sleep=time.sleep, frame_source=None):
        """Poll frames until should_stop() is true.

        on_result(red_count, samples) is called for every change. frame_source
        overrides self.frame_source for this run only.
        """
        read_frame = frame_source or self.frame_source
        self.detector.reset()
        while not should_stop():
            frame = read_frame()
            if frame is not None:
                result = self.process_frame(frame)
                if result is not None:
                    on_result(result, self.last_samples)
            sleep(self.interval)
