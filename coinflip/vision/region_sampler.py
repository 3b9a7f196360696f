"""
Region Sampler - average-colour thresholding over rectangular regions.

Frames are H×W×3 RGB numpy arrays. Each region is given in percent of the
frame so the same layout works at any capture resolution.
"""

from dataclasses import dataclass

import numpy as np

from config import RED_MIN_R, RED_MAX_G, RED_MAX_B


@dataclass
class Region:
    """Centre (x, y) and size (width, height), all in percent of the frame."""
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_dict(cls, data):
        try:
            region = cls(
                x=float(data['x']),
                y=float(data['y']),
                width=float(data.get('width', 0)),
                height=float(data.get('height', 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f'Invalid region {data!r}: {e}') from e

        for value in (region.x, region.y, region.width, region.height):
            if not 0 <= value <= 100:
                raise ValueError(f'Region values must be within 0-100 percent: {data!r}')
        return region

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}

    def to_pixels(self, frame_width, frame_height):
        """Pixel box (left, top, right, bottom), clamped and at least 1×1."""
        cx = self.x / 100 * frame_width
        cy = self.y / 100 * frame_height
        half_w = self.width / 100 * frame_width / 2
        half_h = self.height / 100 * frame_height / 2

        left = int(max(0, min(frame_width - 1, np.floor(cx - half_w))))
        top = int(max(0, min(frame_height - 1, np.floor(cy - half_h))))
        right = int(max(left + 1, min(frame_width, np.floor(cx + half_w))))
        bottom = int(max(top + 1, min(frame_height, np.floor(cy + half_h))))
        return left, top, right, bottom


def regions_from_dicts(items):
    return [Region.from_dict(item) for item in items]


def sample_region(frame, region):
    """Mean (r, g, b) of the pixels inside a region."""
    height, width = frame.shape[:2]
    left, top, right, bottom = region.to_pixels(width, height)
    patch = frame[top:bottom, left:right, :3].reshape(-1, 3).astype(np.float64)
    r, g, b = patch.mean(axis=0)
    return float(r), float(g), float(b)


def is_red(rgb):
    r, g, b = rgb
    return r > RED_MIN_R and g < RED_MAX_G and b < RED_MAX_B


def count_red(frame, regions):
    """Count regions whose average colour reads as a red coin.

    Returns (red_count, samples) where samples lists each region's colour.
    """
    if frame is None or frame.ndim != 3 or frame.shape[2] < 3:
        raise ValueError('Frame must be an H×W×3 RGB array')

    red_count = 0
    samples = []
    for region in regions:
        rgb = sample_region(frame, region)
        red = is_red(rgb)
        if red:
            red_count += 1
        samples.append({
            'region': region.to_dict(),
            'color': 'rgb({},{},{})'.format(*(int(round(c)) for c in rgb)),
            'is_red': red,
        })
    return red_count, samples


class ResultChangeDetector:
    """Reports a count only when it differs from the previous reading.

    The very first reading is remembered but never reported, so whatever
    is on screen when capture starts is not logged as a new flip.
    """

    def __init__(self):
        self.last_result = None

    def observe(self, count):
        if self.last_result is None:
            self.last_result = count
            return None
        if count == self.last_result:
            return None
        self.last_result = count
        return count

    def reset(self):
        self.last_result = None
