# shared test fixtures - carriers are built on the fly, nothing is checked in

import random

import pytest
from PIL import Image

from lsb import HEADER_SIZE


@pytest.fixture
def carrier_bmp(tmp_path):
    # real 100x40 24-bit bmp made with pillow. 100 * 3 is a multiple of 4 so
    # there's no row padding and the file is exactly 54 + 12000 bytes
    path = tmp_path / "carrier.bmp"
    img = Image.new("RGB", (100, 40))
    img.putdata([((i * 7) % 256, (i * 13) % 256, (i * 29) % 256) for i in range(100 * 40)])
    img.save(path, format="BMP")
    return path


@pytest.fixture
def make_raw_carrier(tmp_path):
    """Factory for carriers with an arbitrary 54-byte header and ``usable`` raster bytes."""
    def make(usable: int, name: str = "raw.bmp", seed: int = 1):
        rng = random.Random(seed)
        header = b"BM" + bytes(rng.randrange(256) for _ in range(HEADER_SIZE - 2))
        raster = bytes(rng.randrange(256) for _ in range(usable))
        path = tmp_path / name
        path.write_bytes(header + raster)
        return path
    return make
