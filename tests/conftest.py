from __future__ import annotations

import logging
from pathlib import Path

import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path: Path):
    """
    Write a test image and return its path.

    make_image("photo.jpg", (2400, 1600)) -> tmp_path/src/photo.jpg
    """
    src_dir = tmp_path / "src"
    src_dir.mkdir(exist_ok=True)

    def _make(
        name: str,
        size: tuple[int, int] = (640, 480),
        mode: str = "RGB",
        fmt: str = "JPEG",
        color=(200, 120, 40),
        **save_kwargs,
    ) -> Path:
        path = src_dir / name
        im = Image.new(mode, size, color)
        # A bit of structure so encoders have something to compress.
        im.paste(Image.new(mode, (size[0] // 2, size[1] // 2), _contrast(mode)), (0, 0))
        im.save(path, format=fmt, **save_kwargs)
        return path

    return _make


def _contrast(mode: str):
    if mode == "RGBA":
        return (10, 60, 220, 128)
    if mode == "L":
        return 30
    if mode == "P":
        return 1
    return (10, 60, 220)


@pytest.fixture(autouse=True)
def _reset_rio_logger():
    yield
    logger = logging.getLogger("rio")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
