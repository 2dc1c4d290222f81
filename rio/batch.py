from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .engine import split_stem
from .optimizer import ImageOptimizationError, ImageOptimizer
from .results import OptimizedImageResult
from .settings import OptimizationOptions

logger = logging.getLogger(__name__)

# Not in every platform's mime table.
_EXTRA_MIME_TYPES = {
    ".webp": "image/webp",
}

SKIP_UNSUPPORTED_TYPE = "unsupported_type"


@dataclass(frozen=True)
class OptimizationRequest:
    """One image slot to optimize: where from, where to, under which name."""
    source_path: Path
    destination_dir: Path
    base_name: str
    options: OptimizationOptions = field(default_factory=OptimizationOptions)
    generate_thumbnail: bool = False


@dataclass(frozen=True)
class BatchItem:
    request: OptimizationRequest
    src_bytes: int
    result: Optional[OptimizedImageResult] = None
    error: Optional[str] = None
    skipped_reason: Optional[str] = None

    @property
    def out_bytes(self) -> int:
        # Skipped and failed files count as unchanged.
        return self.result.optimized_size if self.result else self.src_bytes


@dataclass(frozen=True)
class BatchSummary:
    total_files: int
    processed: int
    skipped: int
    failed: int
    total_src_bytes: int
    total_out_bytes: int

    @property
    def saved_bytes(self) -> int:
        return max(0, self.total_src_bytes - self.total_out_bytes)

    @property
    def saved_percent(self) -> float:
        if self.total_src_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.total_src_bytes) * 100.0


def guess_mime_type(path: Path) -> str:
    mime, _encoding = mimetypes.guess_type(str(path))
    if not mime:
        mime = _EXTRA_MIME_TYPES.get(Path(path).suffix.lower())
    return mime or ""


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def iter_images(
    paths: Sequence[Path],
    recursive: bool = True,
    exclude_dir: Optional[Path] = None,
) -> Iterable[Path]:
    """
    Yield image paths from a mixture of files and directories.

    Explicit files are yielded as given (the batch reports unsupported ones).
    Directory entries are yielded only when their type is an accepted image.

    exclude_dir:
        If provided, any files inside this directory will be skipped.
        (Prevents re-processing output files when the output dir is inside an input dir.)
    """
    exclude_resolved = exclude_dir.resolve() if exclude_dir else None

    for p in paths:
        p = Path(p)

        if p.is_file():
            if exclude_resolved and _is_relative_to(p.resolve(), exclude_resolved):
                continue
            yield p
            continue

        if p.is_dir():
            pattern = "**/*" if recursive else "*"
            for f in sorted(p.glob(pattern)):
                if not f.is_file():
                    continue
                if not ImageOptimizer.is_valid_image_format(guess_mime_type(f)):
                    continue
                if exclude_resolved and _is_relative_to(f.resolve(), exclude_resolved):
                    continue
                yield f


def build_requests(
    sources: Iterable[Path],
    destination_dir: Path,
    options: OptimizationOptions,
    generate_thumbnail: bool = False,
) -> List[OptimizationRequest]:
    """
    Pair each source with a base name that is unique within destination_dir.

    With thumbnails, <base>_thumb is reserved too, so no upload's main image
    can land on another upload's thumbnail.
    """
    used: set[str] = set()
    requests: List[OptimizationRequest] = []

    def taken(name: str) -> bool:
        if name in used:
            return True
        return generate_thumbnail and f"{name}_thumb" in used

    for src in sources:
        stem = split_stem(str(src))
        base = stem
        i = 1
        while taken(base):
            # photo -> photo-1 -> photo-2 ...
            base = f"{stem}-{i}"
            i += 1
        used.add(base)
        if generate_thumbnail:
            used.add(f"{base}_thumb")

        requests.append(
            OptimizationRequest(
                source_path=Path(src),
                destination_dir=Path(destination_dir),
                base_name=base,
                options=options,
                generate_thumbnail=generate_thumbnail,
            )
        )

    return requests


async def optimize_batch(
    requests: Sequence[OptimizationRequest],
    optimizer: Optional[ImageOptimizer] = None,
    concurrency: int = 4,
    cleanup_sources: bool = False,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> tuple[List[BatchItem], BatchSummary]:
    """
    Optimize many images concurrently.

    Files whose type is not an accepted image are skipped before any decode.
    A failed file is recorded on its BatchItem and does not stop the batch.
    With cleanup_sources, a source is deleted only after it was optimized.
    """
    optimizer = optimizer or ImageOptimizer()
    semaphore = asyncio.Semaphore(max(1, int(concurrency)))
    total = len(requests)
    done = 0

    async def run_one(req: OptimizationRequest) -> BatchItem:
        nonlocal done
        item = await _optimize_one(req, optimizer, semaphore, cleanup_sources)
        done += 1
        if progress_callback:
            progress_callback(done, total)
        return item

    items = list(await asyncio.gather(*(run_one(r) for r in requests)))
    summary = summarize(items)

    logger.info(
        f"Batch finished: {summary.processed} optimized, {summary.skipped} skipped, "
        f"{summary.failed} failed of {summary.total_files}"
    )
    return items, summary


async def _optimize_one(
    req: OptimizationRequest,
    optimizer: ImageOptimizer,
    semaphore: asyncio.Semaphore,
    cleanup_sources: bool,
) -> BatchItem:
    src_bytes = _file_size(req.source_path)

    if not optimizer.is_valid_image_format(guess_mime_type(req.source_path)):
        logger.info(f"Skipping {req.source_path}: not an accepted image type")
        return BatchItem(request=req, src_bytes=src_bytes, skipped_reason=SKIP_UNSUPPORTED_TYPE)

    async with semaphore:
        try:
            result = await optimizer.optimize_image(
                req.source_path,
                req.destination_dir,
                req.base_name,
                req.options,
                generate_thumbnail=req.generate_thumbnail,
            )
        except ImageOptimizationError as e:
            return BatchItem(request=req, src_bytes=src_bytes, error=str(e))

    if cleanup_sources:
        await optimizer.cleanup_temp_file(req.source_path)

    return BatchItem(request=req, src_bytes=result.original_size, result=result)


def summarize(items: Sequence[BatchItem]) -> BatchSummary:
    return BatchSummary(
        total_files=len(items),
        processed=sum(1 for i in items if i.result is not None),
        skipped=sum(1 for i in items if i.skipped_reason is not None),
        failed=sum(1 for i in items if i.error is not None),
        total_src_bytes=sum(i.src_bytes for i in items),
        total_out_bytes=sum(i.out_bytes for i in items),
    )


def _file_size(p: Path) -> int:
    try:
        return Path(p).stat().st_size
    except OSError:
        return 0
