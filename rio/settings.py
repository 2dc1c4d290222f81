from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Literal, Mapping, Optional, Union


# Encoders we write. The thumbnail always uses "jpeg".
OutputFormat = Literal["jpeg", "png", "webp"]

OUTPUT_FORMATS = ("jpeg", "png", "webp")

DEFAULT_QUALITY = 85
DEFAULT_FORMAT: OutputFormat = "jpeg"

# camelCase keys accepted from upload handlers that pass plain dicts.
_KEY_ALIASES = {
    "maintainAspectRatio": "maintain_aspect_ratio",
}


@dataclass(frozen=True)
class OptimizationOptions:
    """
    Resize/encode policy for one optimization.

    Pure data: the engine turns it into a resize plan and an encode plan.
    """

    # ----- Resize -----
    # None means "don't constrain that axis". Both None skips resizing.
    width: Optional[int] = None
    height: Optional[int] = None

    # True -> fit inside the box (no crop). False -> cover the box (crop).
    maintain_aspect_ratio: bool = True

    # ----- Encoding -----
    quality: int = DEFAULT_QUALITY  # ignored for PNG
    format: OutputFormat = DEFAULT_FORMAT


OptionsLike = Union[OptimizationOptions, Mapping[str, Any], None]


def resolve_options(options: OptionsLike) -> OptimizationOptions:
    """
    Fill defaults and validate, once, before the pipeline runs.

    Accepts an OptimizationOptions, a mapping (snake_case or camelCase keys)
    or None. Mapping values of None fall back to the defaults.
    """
    if options is None:
        opts = OptimizationOptions()
    elif isinstance(options, OptimizationOptions):
        opts = options
    else:
        known = {f.name for f in fields(OptimizationOptions)}
        kwargs: dict = {}
        for key, value in options.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown option: {key}")
            if value is not None:
                kwargs[name] = value
        opts = OptimizationOptions(**kwargs)

    _validate(opts)
    return opts


def _validate(opts: OptimizationOptions) -> None:
    for axis in ("width", "height"):
        value = getattr(opts, axis)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"{axis} must be a positive integer, got {value!r}")

    if isinstance(opts.quality, bool) or not isinstance(opts.quality, int):
        raise ValueError(f"quality must be an integer, got {opts.quality!r}")
    if not 1 <= opts.quality <= 100:
        raise ValueError(f"quality must be between 1 and 100, got {opts.quality}")

    if opts.format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported format: {opts.format!r}")
