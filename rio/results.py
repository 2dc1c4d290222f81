from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    @property
    def usable(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class ImageMetadata:
    """What we learn from an image header before or after writing it."""
    width: int
    height: int
    format: Optional[str]  # Pillow's format name, e.g. "JPEG"

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


@dataclass(frozen=True)
class OptimizedImageResult:
    """
    Output of optimizing a single image.

    Keeping it immutable (frozen=True) makes it safe to hand straight to
    whatever persists the paths.
    """
    original_path: Path
    optimized_path: Path
    original_size: int
    optimized_size: int
    compression_ratio: float  # percent, one decimal, negative if it grew
    dimensions: Dimensions
    thumbnail_path: Optional[Path] = None  # None unless a thumbnail was requested

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.optimized_size

    def to_dict(self) -> dict:
        return {
            "original_path": str(self.original_path),
            "optimized_path": str(self.optimized_path),
            "thumbnail_path": str(self.thumbnail_path) if self.thumbnail_path else None,
            "original_size": self.original_size,
            "optimized_size": self.optimized_size,
            "compression_ratio": self.compression_ratio,
            "width": self.dimensions.width,
            "height": self.dimensions.height,
        }


def compression_ratio(original_size: int, optimized_size: int) -> float:
    """Percentage reduction from original_size to optimized_size, one decimal."""
    if original_size <= 0:
        return 0.0
    return round((original_size - optimized_size) / original_size * 100.0, 1)
