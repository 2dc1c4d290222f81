from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .batch import BatchItem, BatchSummary


@dataclass(frozen=True)
class FileReport:
    src_path: str
    out_path: Optional[str]
    thumbnail_path: Optional[str]
    src_bytes: int
    out_bytes: int
    compression_ratio: Optional[float]
    width: Optional[int]
    height: Optional[int]
    skipped_reason: Optional[str]
    error: Optional[str]


@dataclass(frozen=True)
class BatchReport:
    created_utc: str
    summary: dict
    files: List[FileReport]


def build_report(items: List[BatchItem], summary: BatchSummary) -> BatchReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    files: List[FileReport] = []
    for item in items:
        r = item.result
        files.append(
            FileReport(
                src_path=str(item.request.source_path),
                out_path=str(r.optimized_path) if r else None,
                thumbnail_path=str(r.thumbnail_path) if r and r.thumbnail_path else None,
                src_bytes=item.src_bytes,
                out_bytes=item.out_bytes,
                compression_ratio=r.compression_ratio if r else None,
                width=r.dimensions.width if r else None,
                height=r.dimensions.height if r else None,
                skipped_reason=item.skipped_reason,
                error=item.error,
            )
        )

    summary_dict = {
        "total_files": summary.total_files,
        "processed": summary.processed,
        "skipped": summary.skipped,
        "failed": summary.failed,
        "total_src_bytes": summary.total_src_bytes,
        "total_out_bytes": summary.total_out_bytes,
        "saved_bytes": summary.saved_bytes,
        "saved_percent": round(summary.saved_percent, 1),
    }

    return BatchReport(created_utc=created_utc, summary=summary_dict, files=files)


def save_report_json(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)


def save_report_csv(report: BatchReport, path: Path) -> None:
    """One row per file; the summary only goes to the JSON report."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    columns = [f.name for f in fields(FileReport)]

    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for row in report.files:
            writer.writerow(asdict(row))
