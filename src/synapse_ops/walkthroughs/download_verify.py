# src/synapse_ops/walkthroughs/download_verify.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from synapse_ops.config import load_settings
from synapse_ops.errors import OperationError
from synapse_ops.structured_logging import log_event
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.download_verify")


def verify_bytes(original: bytes, downloaded: bytes) -> bool:
    return bytes(original) == bytes(downloaded)


def _printable(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


async def run(args: argparse.Namespace) -> int:
    print("Downloading and Verifying Filecoin Data...\n")
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    common.section("Step 1: Download from Filecoin")
    print(f"Requesting data for PieceCID: {args.piece_cid}...")
    try:
        downloaded = await client.download(args.piece_cid)
    except Exception as e:
        raise OperationError.wrap("download_failed", e) from e
    print(f"✓ Download complete! Received {len(downloaded)} bytes.")

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(downloaded)
    print(f"Saved to: {out_path}\n")

    common.section("Step 2: Verify Integrity")
    if not args.original:
        print("No original file given (--original); skipping verification.")
        return 0

    original_path = Path(args.original)
    if not original_path.is_file():
        # Missing original: warn only.
        print("\n⚠️  Could not find original file for verification.", file=sys.stderr)
        print(f"Checked path: {original_path}", file=sys.stderr)
        return 0

    original = original_path.read_bytes()
    print(f"Original file: {original_path}")
    print(f"Original size: {len(original)} bytes")
    print(f"Downloaded size: {len(downloaded)} bytes")

    if not verify_bytes(original, downloaded):
        print("\n❌ VERIFICATION FAILED", file=sys.stderr)
        print("The downloaded data does not match the original file.", file=sys.stderr)
        print("This suggests data corruption or an incorrect PieceCID.", file=sys.stderr)
        log_event(log, "verification_failed", level=logging.ERROR, piece_cid=args.piece_cid)
        return 1

    print("\n✅ VERIFICATION SUCCESSFUL")
    print("The downloaded bytes strictly match the original file.")
    log_event(log, "verification_ok", piece_cid=args.piece_cid, size=len(downloaded))

    text = _printable(downloaded)
    if text is not None:
        print("\n--- File Content ---")
        print(text)
        print("--------------------\n")
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Download a piece by PieceCID and verify it against the original file")
    ap.add_argument("piece_cid", help="PieceCID printed by first_upload")
    ap.add_argument("--original", default="", help="path of the originally uploaded file")
    ap.add_argument("--output", default="downloaded_file.bin", help="where to save the downloaded bytes")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
