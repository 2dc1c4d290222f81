"""
Async image optimizer for recipe and avatar uploads.

Pillow work runs in an executor and file-system calls go through aiofiles,
so a serving event loop keeps handling other requests meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
import os
from concurrent.futures import Executor
from pathlib import Path
from typing import Any, Callable, Optional, Union

import aiofiles.os

from . import engine
from .presets import AVATAR, RECIPE_IMAGE, THUMBNAIL
from .results import OptimizedImageResult, compression_ratio
from .settings import OptionsLike, resolve_options


StrPath = Union[str, "os.PathLike[str]"]

VALID_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
})


class ImageOptimizationError(Exception):
    """Raised for every failure of ImageOptimizer.optimize_image."""

    def __init__(self, cause: str):
        super().__init__(f"Image optimization failed: {cause}")
        self.cause = cause


class ImageOptimizer:
    """
    Resize, re-encode and thumbnail uploaded images.

    Stateless between calls: concurrent calls are safe as long as each uses
    its own base_name in the destination directory.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, executor: Optional[Executor] = None):
        """
        Args:
            logger: Where progress and failures are logged (default: module logger)
            executor: Executor for decode/encode work (default: the loop's executor)
        """
        self.logger = logger or logging.getLogger(__name__)
        self._executor = executor

    async def optimize_recipe_image(
        self,
        source_path: StrPath,
        destination_dir: StrPath,
        base_name: str,
    ) -> OptimizedImageResult:
        """Recipe preset: fit within 1200x800 and write a 400x300 thumbnail."""
        return await self.optimize_image(
            source_path,
            destination_dir,
            base_name,
            RECIPE_IMAGE,
            generate_thumbnail=True,
        )

    async def optimize_avatar_image(
        self,
        source_path: StrPath,
        destination_dir: StrPath,
        base_name: str,
    ) -> OptimizedImageResult:
        """Avatar preset: 300x300 square crop, no thumbnail."""
        return await self.optimize_image(
            source_path,
            destination_dir,
            base_name,
            AVATAR,
            generate_thumbnail=False,
        )

    async def optimize_image(
        self,
        source_path: StrPath,
        destination_dir: StrPath,
        base_name: str,
        options: OptionsLike = None,
        generate_thumbnail: bool = False,
    ) -> OptimizedImageResult:
        """
        Optimize one image into destination_dir.

        Writes <base_name>.<ext> and, when generate_thumbnail is set,
        <base_name>_thumb.jpg. The source file is never modified or deleted.

        Args:
            source_path: Image to read; the format is detected from content
            destination_dir: Created (with parents) if missing
            base_name: Output file stem, without extension
            options: OptimizationOptions, a mapping of the same fields, or None
            generate_thumbnail: Also write a 400x300 JPEG thumbnail

        Returns:
            OptimizedImageResult with paths, byte sizes and final dimensions

        Raises:
            ImageOptimizationError: on any failure, chained from the cause
        """
        try:
            return await self._optimize(source_path, destination_dir, base_name, options, generate_thumbnail)
        except Exception as e:
            cause = str(e) or "Unknown error"
            self.logger.error(f"Failed to optimize image {base_name}: {type(e).__name__}: {cause}")
            raise ImageOptimizationError(cause) from e

    async def _optimize(
        self,
        source_path: StrPath,
        destination_dir: StrPath,
        base_name: str,
        options: OptionsLike,
        generate_thumbnail: bool,
    ) -> OptimizedImageResult:
        source_path = Path(source_path)
        destination_dir = Path(destination_dir)
        opts = resolve_options(options)

        original_size = (await aiofiles.os.stat(source_path)).st_size

        # exist_ok: concurrent uploads may race to create the same directory
        await aiofiles.os.makedirs(destination_dir, exist_ok=True)

        source_meta = await self._run(engine.read_metadata, source_path)

        resize_plan = engine.plan_resize(opts)
        encode_plan = engine.plan_encode(opts)
        optimized_path = destination_dir / f"{base_name}{encode_plan.extension}"

        self.logger.debug(
            f"Optimizing {source_path} ({source_meta.format} {source_meta.width}x{source_meta.height}) "
            f"-> {optimized_path} resize={resize_plan} encode={encode_plan.format}"
        )

        await self._run(engine.render, source_path, optimized_path, resize_plan, encode_plan)

        thumbnail_path = None
        if generate_thumbnail:
            # TODO: decide whether thumbnails should follow the primary format
            thumb_encode = engine.plan_encode(THUMBNAIL)
            thumbnail_path = destination_dir / f"{base_name}_thumb{thumb_encode.extension}"
            await self._run(engine.render, source_path, thumbnail_path, engine.plan_resize(THUMBNAIL), thumb_encode)

        optimized_size = (await aiofiles.os.stat(optimized_path)).st_size

        final_meta = await self._run(engine.read_metadata, optimized_path)
        dimensions = final_meta.dimensions
        if not dimensions.usable:
            self.logger.warning(
                f"No usable dimensions in {optimized_path}, reporting source dimensions instead"
            )
            dimensions = source_meta.dimensions

        ratio = compression_ratio(original_size, optimized_size)

        self.logger.info(
            f"Image optimized: {base_name} | {original_size / 1024:.1f}KB → "
            f"{optimized_size / 1024:.1f}KB | {ratio:.1f}% reduction"
        )

        return OptimizedImageResult(
            original_path=source_path,
            optimized_path=optimized_path,
            thumbnail_path=thumbnail_path,
            original_size=original_size,
            optimized_size=optimized_size,
            compression_ratio=ratio,
            dimensions=dimensions,
        )

    async def cleanup_temp_file(self, path: StrPath) -> None:
        """Delete a temporary upload. Failures are logged, never raised."""
        try:
            await aiofiles.os.remove(path)
            self.logger.info(f"Cleaned up temporary file: {path}")
        except Exception as e:
            self.logger.warning(f"Failed to cleanup temporary file {path}: {e}")

    @staticmethod
    def is_valid_image_format(mime_type: str) -> bool:
        """Case-insensitive check against the accepted upload MIME types."""
        if not isinstance(mime_type, str):
            return False
        return mime_type.lower() in VALID_MIME_TYPES

    @staticmethod
    def get_optimized_filename(original_filename: str, format: str = "jpeg") -> str:
        """photo.png -> photo.jpg (only the last extension is replaced)."""
        return engine.optimized_filename(original_filename, format)

    @staticmethod
    def get_thumbnail_filename(original_filename: str, format: str = "jpeg") -> str:
        """recipe.jpg -> recipe_thumb.jpg."""
        return engine.thumbnail_filename(original_filename, format)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)
