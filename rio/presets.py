from __future__ import annotations

from .settings import OptimizationOptions


# Recipe hero image: fit within 1200x800, never crop.
RECIPE_IMAGE = OptimizationOptions(
    width=1200,
    height=800,
    quality=85,
    format="jpeg",
    maintain_aspect_ratio=True,
)

# Generated next to recipe images, always from the original upload.
THUMBNAIL = OptimizationOptions(
    width=400,
    height=300,
    quality=80,
    format="jpeg",
    maintain_aspect_ratio=True,
)

# Square crop for avatars.
AVATAR = OptimizationOptions(
    width=300,
    height=300,
    quality=90,
    format="jpeg",
    maintain_aspect_ratio=False,
)

# name -> (options, generate_thumbnail)
PRESETS = {
    "recipe": (RECIPE_IMAGE, True),
    "avatar": (AVATAR, False),
}


def apply_preset(name: str) -> tuple[OptimizationOptions, bool]:
    name = name.lower()

    if name in PRESETS:
        return PRESETS[name]

    raise ValueError(f"Unknown preset: {name}")
