from pathlib import Path

from rio.results import Dimensions, OptimizedImageResult, compression_ratio


def test_compression_ratio_one_decimal():
    assert compression_ratio(1536, 1024) == 33.3
    assert compression_ratio(2048, 1024) == 50.0


def test_compression_ratio_negative_when_output_grew():
    assert compression_ratio(1000, 1250) == -25.0


def test_compression_ratio_empty_original():
    assert compression_ratio(0, 10) == 0.0


def test_to_dict():
    r = OptimizedImageResult(
        original_path=Path("/tmp/in.png"),
        optimized_path=Path("/out/a.jpg"),
        original_size=2048,
        optimized_size=1024,
        compression_ratio=50.0,
        dimensions=Dimensions(1200, 800),
    )

    assert r.saved_bytes == 1024
    assert r.to_dict() == {
        "original_path": str(Path("/tmp/in.png")),
        "optimized_path": str(Path("/out/a.jpg")),
        "thumbnail_path": None,
        "original_size": 2048,
        "optimized_size": 1024,
        "compression_ratio": 50.0,
        "width": 1200,
        "height": 800,
    }


def test_dimensions_usable():
    assert Dimensions(1, 1).usable
    assert not Dimensions(0, 300).usable
