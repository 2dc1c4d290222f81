from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from .batch import build_requests, iter_images, optimize_batch
from .logs import setup_logging
from .optimizer import ImageOptimizer
from .presets import PRESETS, apply_preset
from .report import build_report, save_report_csv, save_report_json
from .settings import DEFAULT_QUALITY, OptimizationOptions, resolve_options


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rio",
        description="Recipe Image Optimizer (resize, re-encode, thumbnail)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    opt = sub.add_parser("optimize", help="Optimize images in files/folders")
    opt.add_argument("inputs", nargs="+", help="Files and/or folders to process")

    # Output
    opt.add_argument("--out", required=True, help="Output directory")
    opt.add_argument("--no-recursive", action="store_true", help="Do not scan folders recursively")
    opt.add_argument("--no-report", action="store_true", help="Do not write report.json / report.csv")
    opt.add_argument("--cleanup", action="store_true", help="Delete each source file after it was optimized")
    opt.add_argument("--concurrency", type=int, default=4, help="Images optimized at once (default: 4)")

    # Policy
    opt.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default=None,
        help="Use a named policy; overrides the resize/format options below",
    )
    opt.add_argument("--width", type=int, default=None, help="Max width")
    opt.add_argument("--height", type=int, default=None, help="Max height")
    opt.add_argument("--crop", action="store_true", help="Fill width x height exactly, cropping overflow")
    opt.add_argument("--quality", type=int, default=DEFAULT_QUALITY, help=f"JPEG/WebP quality (1-100), default {DEFAULT_QUALITY}")
    opt.add_argument("--thumbnail", action="store_true", help="Also write a 400x300 JPEG thumbnail")

    fmt = opt.add_mutually_exclusive_group()
    fmt.add_argument("--jpeg", action="store_true", help="Output JPEG (default)")
    fmt.add_argument("--png", action="store_true", help="Output PNG")
    fmt.add_argument("--webp", action="store_true", help="Output WebP")

    # Logging
    opt.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING, ERROR (default: INFO)")
    opt.add_argument("--log-dir", default=None, help="Also write rotating log files here")

    return p


def _options_from_args(args: argparse.Namespace) -> tuple[OptimizationOptions, bool]:
    if args.preset:
        return apply_preset(args.preset)

    if args.png:
        out_fmt = "png"
    elif args.webp:
        out_fmt = "webp"
    else:
        out_fmt = "jpeg"

    opts = resolve_options(
        OptimizationOptions(
            width=args.width,
            height=args.height,
            quality=int(args.quality),
            format=out_fmt,
            maintain_aspect_ratio=not bool(args.crop),
        )
    )
    return opts, bool(args.thumbnail)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "optimize":
        setup_logging(Path(args.log_dir) if args.log_dir else None, args.log_level)

        inputs = [Path(p) for p in args.inputs]
        out_dir = Path(args.out)

        try:
            options, thumbnail = _options_from_args(args)
        except ValueError as e:
            parser.error(str(e))

        sources = list(iter_images(inputs, recursive=not bool(args.no_recursive), exclude_dir=out_dir))
        requests = build_requests(sources, out_dir, options, generate_thumbnail=thumbnail)

        items, summary = asyncio.run(
            optimize_batch(
                requests,
                ImageOptimizer(),
                concurrency=args.concurrency,
                cleanup_sources=bool(args.cleanup),
            )
        )

        print("\n=== Batch Summary ===")
        print("Total found:", summary.total_files)
        print("Optimized  :", summary.processed)
        print("Skipped    :", summary.skipped)
        print("Failed     :", summary.failed)
        print(f"Saved      : {summary.saved_bytes} bytes ({summary.saved_percent:.1f}%)")

        failures = [i for i in items if i.error]
        if failures:
            print("\nFailures:")
            for item in failures:
                print(f"  {item.request.source_path}: {item.error}")

        if not args.no_report:
            report = build_report(items, summary)

            json_path = out_dir / "report.json"
            save_report_json(report, json_path)

            csv_path = out_dir / "report.csv"
            save_report_csv(report, csv_path)

            print("\nReport written:", json_path)
            print("CSV written   :", csv_path)

        return 1 if failures else 0

    parser.print_help()
    return 2
