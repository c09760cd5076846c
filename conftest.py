"""
Shared fixtures: a small tag table and a fake inference engine, so tests
never need to download a model.
"""

import numpy as np
import pytest
from PIL import Image
from wd_tagger.engine import InferenceEngine
from wd_tagger.taxonomy import TagTaxonomy


TAG_ROWS = [
    # tag_id, name, category, count
    ["9999999", "general", "9", "100"],
    ["9999998", "sensitive", "9", "100"],
    ["9999997", "questionable", "9", "100"],
    ["9999996", "explicit", "9", "100"],
    ["470575", "1girl", "0", "100"],
    ["212816", "solo", "0", "100"],
    ["1300281", "hatsune_miku", "4", "100"],
    ["1234", "some_artist", "1", "100"],
    ["8888", "smile", "0", "100"],
    ["7777", "rem_(re:zero)", "4", "100"],
]


class FakeEngine(InferenceEngine):
    """Scores derived from each image's mean blue, green and red values.

    Column layout follows TAG_ROWS: the blue mean drives "1girl", the green
    mean "solo" and the red mean "hatsune_miku".
    """

    def __init__(self, input_size=8, num_classes=len(TAG_ROWS)):
        self.input_size = input_size
        self.num_classes = num_classes
        self.calls = []
        self.closed = False

    def run(self, batch):
        self.calls.append(batch.shape)
        means = batch.reshape(batch.shape[0], -1, 3).mean(axis=1) / 255.0
        blue, green, red = means[:, 0], means[:, 1], means[:, 2]
        scores = np.zeros((batch.shape[0], self.num_classes), dtype=np.float32)
        scores[:, 0] = 0.7
        scores[:, 1] = 0.2
        scores[:, 2] = 0.05
        scores[:, 3] = 0.01
        scores[:, 4] = blue
        scores[:, 5] = green
        scores[:, 6] = red
        scores[:, 7] = 1.0
        scores[:, 8] = 1.0 - blue
        scores[:, 9] = 0.1
        return scores

    def close(self):
        self.closed = True


@pytest.fixture
def taxonomy():
    return TagTaxonomy.from_rows(TAG_ROWS)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def solid_images():
    colors = [
        (255, 0, 0),
        (0, 255, 0),
        (0, 0, 255),
        (255, 255, 0),
        (0, 255, 255),
        (255, 0, 255),
        (128, 128, 128),
        (10, 200, 90),
    ]
    return [Image.new("RGB", (12 + i, 9), color) for i, color in enumerate(colors)]
