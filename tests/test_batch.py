from pathlib import Path

import pytest
from PIL import Image

from rio.batch import (
    SKIP_UNSUPPORTED_TYPE,
    BatchItem,
    OptimizationRequest,
    build_requests,
    guess_mime_type,
    iter_images,
    optimize_batch,
    summarize,
)
from rio.presets import AVATAR, RECIPE_IMAGE


def test_iter_images_filters_directories(make_image, tmp_path):
    a = make_image("a.jpg")
    b = make_image("b.png", fmt="PNG")
    (a.parent / "notes.txt").write_text("hello")
    nested = a.parent / "nested"
    nested.mkdir()
    c = nested / "c.webp"
    c.write_bytes(a.read_bytes())

    assert list(iter_images([a.parent])) == [a, b, c]
    assert list(iter_images([a.parent], recursive=False)) == [a, b]


def test_iter_images_yields_explicit_files_and_excludes_output(make_image):
    a = make_image("a.jpg")
    notes = a.parent / "notes.txt"
    notes.write_text("hello")
    out = a.parent / "out"
    out.mkdir()
    (out / "a.jpg").write_bytes(a.read_bytes())

    assert list(iter_images([notes])) == [notes]
    assert list(iter_images([a.parent], exclude_dir=out)) == [a]


def test_build_requests_unique_base_names(tmp_path):
    sources = [Path("x/photo.jpg"), Path("y/photo.png"), Path("z/photo.webp"), Path("cake.jpg")]

    requests = build_requests(sources, tmp_path, RECIPE_IMAGE, generate_thumbnail=True)

    assert [r.base_name for r in requests] == ["photo", "photo-1", "photo-2", "cake"]
    assert all(r.destination_dir == tmp_path and r.generate_thumbnail for r in requests)


def test_build_requests_reserves_thumbnail_names(tmp_path):
    sources = [Path("photo.jpg"), Path("photo_thumb.jpg"), Path("a/cake_thumb.png"), Path("b/cake.png")]

    with_thumbs = build_requests(sources, tmp_path, RECIPE_IMAGE, generate_thumbnail=True)
    without = build_requests(sources, tmp_path, RECIPE_IMAGE, generate_thumbnail=False)

    assert [r.base_name for r in with_thumbs] == ["photo", "photo_thumb-1", "cake_thumb", "cake-1"]
    assert [r.base_name for r in without] == ["photo", "photo_thumb", "cake_thumb", "cake"]


@pytest.mark.asyncio
async def test_main_image_never_overwrites_another_thumbnail(make_image, tmp_path):
    wide = make_image("photo.jpg", (2000, 1000))
    tall = make_image("photo_thumb.jpg", (1000, 2000))
    out = tmp_path / "out"

    requests = build_requests([wide, tall], out, RECIPE_IMAGE, generate_thumbnail=True)
    items, summary = await optimize_batch(requests, concurrency=1)

    assert summary.processed == 2
    with Image.open(items[0].result.thumbnail_path) as thumb:
        assert thumb.size == (400, 200)
    with Image.open(items[1].result.optimized_path) as main:
        assert main.size == (400, 800)


def test_guess_mime_type_knows_webp():
    assert guess_mime_type(Path("dish.WEBP")) == "image/webp"
    assert guess_mime_type(Path("dish.jpg")) == "image/jpeg"
    assert guess_mime_type(Path("notes")) == ""


@pytest.mark.asyncio
async def test_optimize_batch_records_each_outcome(make_image, tmp_path):
    good = make_image("good.jpg", (2000, 1000))
    broken = good.parent / "broken.jpg"
    broken.write_bytes(b"garbage")
    notes = good.parent / "notes.txt"
    notes.write_text("hello")
    out = tmp_path / "out"

    progress = []
    requests = build_requests([good, broken, notes], out, RECIPE_IMAGE, generate_thumbnail=True)
    items, summary = await optimize_batch(
        requests, concurrency=2, progress_callback=lambda done, total: progress.append((done, total))
    )

    by_name = {i.request.source_path.name: i for i in items}
    assert by_name["good.jpg"].result.optimized_path == out / "good.jpg"
    assert by_name["broken.jpg"].error.startswith("Image optimization failed: ")
    assert by_name["notes.txt"].skipped_reason == SKIP_UNSUPPORTED_TYPE

    assert (summary.total_files, summary.processed, summary.failed, summary.skipped) == (3, 1, 1, 1)
    assert sorted(progress) == [(1, 3), (2, 3), (3, 3)]

    # nothing is deleted unless asked
    assert good.exists() and broken.exists()


@pytest.mark.asyncio
async def test_cleanup_only_after_success(make_image, tmp_path):
    good = make_image("me.jpg", (600, 600))
    broken = good.parent / "you.jpg"
    broken.write_bytes(b"garbage")

    requests = build_requests([good, broken], tmp_path / "out", AVATAR)
    items, summary = await optimize_batch(requests, cleanup_sources=True)

    assert not good.exists()
    assert broken.exists()
    assert summary.processed == 1 and summary.failed == 1


def test_summarize_counts_bytes():
    req = OptimizationRequest(Path("a.jpg"), Path("out"), "a")
    items = [
        BatchItem(request=req, src_bytes=1000, skipped_reason=SKIP_UNSUPPORTED_TYPE),
        BatchItem(request=req, src_bytes=500, error="Image optimization failed: boom"),
    ]

    summary = summarize(items)

    assert summary.total_src_bytes == 1500
    assert summary.total_out_bytes == 1500
    assert summary.saved_bytes == 0
    assert summary.saved_percent == 0.0
