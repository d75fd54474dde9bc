# src/synapse_ops/walkthroughs/datasets.py
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from synapse_ops.config import load_settings
from synapse_ops.sdk.client import StorageContext
from synapse_ops.structured_logging import log_event
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.datasets")


@dataclass(frozen=True)
class PieceRecord:
    filename: str
    piece_cid: str
    size: int
    provider: Optional[str] = None


def dataset_metadata(*, project: str, category: str, version: str, now: Callable[[], float] = time.time) -> Dict[str, str]:
    created = datetime.fromtimestamp(now(), tz=timezone.utc).date().isoformat()
    return {"project": project, "category": category, "version": version, "created": created}


def short_cid(cid: str) -> str:
    s = str(cid)
    if len(s) <= 30:
        return s
    return f"{s[:20]}...{s[-10:]}"


def list_files(data_dir: Path) -> List[Path]:
    return sorted(p for p in data_dir.iterdir() if p.is_file())


async def upload_files(ctx: StorageContext, files: List[Path]) -> List[PieceRecord]:
    """Upload sequentially. A failed file is reported and skipped."""
    out: List[PieceRecord] = []
    total = len(files)
    for i, path in enumerate(files, start=1):
        print(f"[{i}/{total}] Uploading {path.name}...")
        data = path.read_bytes()
        print(f"  Size: {len(data)} bytes")
        try:
            res = await ctx.upload(data)
        except Exception as e:
            print(f"  ✗ Upload failed: {e}\n", file=sys.stderr)
            log_event(log, "dataset_upload_failed", level=logging.WARNING, file=path.name, error=str(e))
            continue
        out.append(PieceRecord(filename=path.name, piece_cid=res.piece_cid, size=res.size, provider=res.provider))
        print("  ✓ Uploaded successfully")
        print(f"  PieceCID: {res.piece_cid}")
        print(f"  Size: {res.size} bytes\n")
    return out


def print_piece_table(records: List[PieceRecord]) -> None:
    print("┌─────────────────────────────────────────────────────────────────┐")
    for r in records:
        print(f"│ {r.filename:<20} │ {short_cid(r.piece_cid):<35} │")
    print("└─────────────────────────────────────────────────────────────────┘")


async def run(args: argparse.Namespace) -> int:
    print("Working with Filecoin Datasets...\n")
    data_dir = Path(args.data_dir)
    if not data_dir.is_dir():
        raise NotADirectoryError(f"data directory not found: {data_dir}")

    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    common.section("Step 1: Verify Payment Account")
    balance = await common.require_funded(client)
    print(f"Payment Account Balance: {balance} (raw units)")
    print("✓ Payment account is funded")
    await common.require_operator_approval(client)
    print("✓ Operator allowances verified\n")

    common.section("Step 2: Create Storage Context (Dataset)")
    metadata = dataset_metadata(project=args.project, category=args.category, version=args.version)
    ctx = await client.create_context(metadata)
    print("✓ Storage context created successfully")
    if ctx.data_set_id is not None:
        print(f"  Data set ID: {ctx.data_set_id}")
    print("  → This dataset will group all uploaded files together\n")

    common.section("Step 3: Upload Multiple Files to Dataset")
    files = list_files(data_dir)
    print(f"Found {len(files)} files to upload:")
    for f in files:
        print(f"  - {f.name}")
    print()
    records = await upload_files(ctx, files)
    print(f"✅ Successfully uploaded {len(records)} files to the dataset\n")

    common.section("Step 4: Retrieve Dataset Information")
    try:
        info = await client.storage_info()
        print("Storage Information:")
        print(f"  Total Providers: {len(info.providers)}")
        if info.providers:
            p = info.providers[0]
            print("\n  Primary Provider:")
            print(f"    Name: {p.get('name') or 'Unnamed'}")
            print(f"    ID: {p.get('id')}")
            print(f"    Address: {p.get('address')}")
        print()
    except Exception as e:
        print(f"Note: {e}\n")

    common.section("Step 5: List All Pieces in Dataset")
    print(f"\nDataset contains {len(records)} pieces:\n")
    for i, r in enumerate(records, start=1):
        print(f"Piece {i}:")
        print(f"  File: {r.filename}")
        print(f"  PieceCID: {r.piece_cid}")
        print(f"  Size: {r.size} bytes")
        if r.provider:
            print(f"  Provider: {r.provider}")
        print()

    common.section("Step 6: Uploaded Pieces Summary")
    print_piece_table(records)
    log_event(log, "dataset_complete", uploaded=len(records), files=len(files))
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Create a dataset (storage context) and upload a directory of files into it")
    ap.add_argument("data_dir", nargs="?", default="./data", help="directory whose files are uploaded (default ./data)")
    ap.add_argument("--project", default="filecoin-tutorials")
    ap.add_argument("--category", default="documentation")
    ap.add_argument("--version", default="1.0")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
