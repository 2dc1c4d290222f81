from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Literal, Optional
import os
import tempfile

from PIL import Image, ImageOps

from .results import ImageMetadata
from .settings import OptimizationOptions


FORMAT_TO_EXT = {
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
}

# Pillow encoder names.
PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

PNG_COMPRESS_LEVEL = 9

# EXIF orientations that swap width and height.
_ROTATED_ORIENTATIONS = {5, 6, 7, 8}
_EXIF_ORIENTATION = 0x0112

FitMode = Literal["inside", "cover"]


@dataclass(frozen=True)
class ResizePlan:
    """
    How to resize, as plain data.

    inside: fit within width x height, keep aspect ratio, never crop.
    cover:  fill width x height exactly, cropping the overflow.
    A None axis is unconstrained.
    """
    width: Optional[int]
    height: Optional[int]
    fit: FitMode = "inside"
    without_enlargement: bool = True


@dataclass(frozen=True)
class EncodePlan:
    format: str  # "jpeg" | "png" | "webp"
    save_kwargs: dict = field(default_factory=dict)

    @property
    def extension(self) -> str:
        return FORMAT_TO_EXT[self.format]


def plan_resize(opts: OptimizationOptions) -> Optional[ResizePlan]:
    if opts.width is None and opts.height is None:
        return None

    fit: FitMode = "inside" if opts.maintain_aspect_ratio else "cover"
    return ResizePlan(width=opts.width, height=opts.height, fit=fit, without_enlargement=True)


def plan_encode(opts: OptimizationOptions) -> EncodePlan:
    fmt = opts.format

    if fmt == "jpeg":
        return EncodePlan("jpeg", {"quality": int(opts.quality), "progressive": True, "optimize": True})

    if fmt == "png":
        # PNG has no quality knob.
        return EncodePlan("png", {"compress_level": PNG_COMPRESS_LEVEL, "optimize": True})

    if fmt == "webp":
        return EncodePlan("webp", {"quality": int(opts.quality)})

    raise ValueError(f"Unsupported format: {fmt!r}")


def read_metadata(path: Path) -> ImageMetadata:
    """
    Read dimensions and detected format from the image header.

    Dimensions are reported as displayed, i.e. after EXIF orientation.
    """
    with Image.open(path) as im:
        w, h = im.size
        orientation = im.getexif().get(_EXIF_ORIENTATION)
        if orientation in _ROTATED_ORIENTATIONS:
            w, h = h, w
        return ImageMetadata(width=w, height=h, format=im.format)


def render(src_path: Path, out_path: Path, resize: Optional[ResizePlan], encode: EncodePlan) -> None:
    """
    Decode src_path, resize, encode and write out_path.

    The output is written to a temp file next to out_path and renamed into
    place, so a failed encode never leaves a partial out_path behind.
    """
    src_path = Path(src_path)
    out_path = Path(out_path)

    with Image.open(src_path) as im:
        im.load()

        # Outputs carry no EXIF, so bake the orientation into the pixels.
        im = ImageOps.exif_transpose(im)

        im = _normalize_mode(im)
        im = apply_resize(im, resize)
        im = _prepare_for_format(im, encode.format)

        tmp_path = _save_to_temp(im, out_path, encode)

    _finalize_output(tmp_path, out_path)


def apply_resize(im: Image.Image, plan: Optional[ResizePlan]) -> Image.Image:
    """
    Apply a resize plan.
    - no plan -> unchanged
    - cover needs both axes; with one axis it behaves like inside
    - never upscale when plan.without_enlargement
    """
    if plan is None:
        return im

    if plan.fit == "cover" and plan.width is not None and plan.height is not None:
        return _resize_cover(im, plan.width, plan.height, plan.without_enlargement)

    return _resize_inside(im, plan.width, plan.height, plan.without_enlargement)


def _resize_inside(
    im: Image.Image,
    max_w: Optional[int],
    max_h: Optional[int],
    without_enlargement: bool,
) -> Image.Image:
    w, h = im.size

    scales = []
    if max_w is not None:
        scales.append(max_w / w)
    if max_h is not None:
        scales.append(max_h / h)
    if not scales:
        return im

    scale = min(scales)

    if without_enlargement and scale >= 1.0:
        return im

    new_w = max(1, round(w * scale))
    new_h = max(1, round(h * scale))

    if (new_w, new_h) == (w, h):
        return im

    return im.resize((new_w, new_h), Image.Resampling.LANCZOS)


def _resize_cover(im: Image.Image, box_w: int, box_h: int, without_enlargement: bool) -> Image.Image:
    w, h = im.size

    if without_enlargement and (box_w > w or box_h > h):
        # Filling the box would need upscaling: crop what we can, no scaling.
        box_w = min(box_w, w)
        box_h = min(box_h, h)
        if (box_w, box_h) == (w, h):
            return im
        left = (w - box_w) // 2
        top = (h - box_h) // 2
        return im.crop((left, top, left + box_w, top + box_h))

    if (box_w, box_h) == (w, h):
        return im

    return ImageOps.fit(im, (box_w, box_h), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))


def _normalize_mode(im: Image.Image) -> Image.Image:
    # Palette and bilevel images resize with NEAREST only; lift them first.
    if im.mode in ("P", "1"):
        return im.convert("RGBA" if _has_alpha(im) else "RGB")
    return im


def _prepare_for_format(im: Image.Image, out_format: str) -> Image.Image:
    if out_format == "jpeg":
        if _has_alpha(im):
            return _flatten_alpha(im, (255, 255, 255))
        if im.mode not in ("RGB", "L"):
            return im.convert("RGB")
        return im

    if out_format == "png":
        if im.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
            return im.convert("RGBA" if _has_alpha(im) else "RGB")
        return im

    if out_format == "webp":
        if im.mode not in ("RGB", "RGBA"):
            return im.convert("RGBA" if _has_alpha(im) else "RGB")
        return im

    return im


def _save_to_temp(im: Image.Image, out_path: Path, encode: EncodePlan) -> Path:
    # Create temp file in the destination dir so the rename is atomic
    fd, tmp_name = tempfile.mkstemp(prefix=".rio_", suffix=encode.extension, dir=str(out_path.parent))
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        # No exif / icc_profile kwargs: metadata is stripped.
        im.save(tmp_path, format=PIL_FORMATS[encode.format], **encode.save_kwargs)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    return tmp_path


def _finalize_output(tmp_path: Path, out_path: Path) -> None:
    try:
        tmp_path.replace(out_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False


# ----- Filenames -----

def split_stem(filename: str) -> str:
    """
    Drop the directory part and the final extension.

    my-photo.test.png -> my-photo.test, .env -> .env
    """
    stem, _ext = os.path.splitext(PurePath(filename).name)
    return stem


def extension_for(fmt: str) -> str:
    return FORMAT_TO_EXT.get(fmt, f".{fmt}")


def optimized_filename(filename: str, fmt: str = "jpeg") -> str:
    return f"{split_stem(filename)}{extension_for(fmt)}"


def thumbnail_filename(filename: str, fmt: str = "jpeg") -> str:
    return f"{split_stem(filename)}_thumb{extension_for(fmt)}"
