# src/synapse_ops/walkthroughs/first_upload.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from synapse_ops.config import load_settings
from synapse_ops.errors import OperationError, PreconditionError
from synapse_ops.structured_logging import log_event
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.first_upload")

# Storage providers reject pieces smaller than this.
MIN_UPLOAD_BYTES = 127

EXPLORER_URL = "https://calibration.filfox.info/"


def load_upload_file(path: Path) -> bytes:
    if not path.is_file():
        raise PreconditionError("file_not_found", f"File not found: {path}", hint="Pass the path of the file to upload.")
    data = path.read_bytes()
    if len(data) < MIN_UPLOAD_BYTES:
        raise PreconditionError(
            "file_too_small",
            f"File is {len(data)} bytes; minimum upload size is {MIN_UPLOAD_BYTES} bytes",
            hint="Pad the file or choose a larger one.",
        )
    return data


async def run(args: argparse.Namespace) -> int:
    print("Uploading Your First File to Filecoin...\n")
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    common.section("Step 1: Verify Payment Account Balance")
    balance = await common.require_funded(client)
    print(f"Payment Account (USDFC): {balance} (raw units)")
    print("✓ Payment account is funded\n")
    await common.require_operator_approval(client)
    print("✓ Operator allowances verified\n")

    common.section("Step 2: Load Upload Data")
    path = Path(args.path)
    data = load_upload_file(path)
    print(f"File Path: {path}")
    print(f"File Size: {len(data)} bytes")
    print(f"First 100 characters: {data[:100].decode('utf-8', errors='replace')}...\n")

    common.section("Step 3: Upload to Filecoin Network")
    print("Uploading file...")
    print("(This may take 30-60 seconds as the data is processed and stored)\n")
    try:
        result = await client.upload(data)
    except Exception as e:
        raise OperationError.wrap("upload_failed", e) from e
    print("✓ Upload successful!\n")
    log_event(log, "upload_complete", piece_cid=result.piece_cid, size=result.size)

    common.section("Step 4: Upload Response Details")
    print(f"PieceCID: {result.piece_cid}")
    print("  → This is your data's unique identifier on Filecoin")
    print("  → Use this to retrieve your data from any provider\n")
    print(f"Size: {result.size} bytes")
    print(f"  → Matches original file: {'✓' if result.size == len(data) else '✗'}\n")
    if result.provider:
        print(f"Provider: {result.provider}")
        print("  → SDK automatically selected this provider for you\n")

    common.section("Step 5: On-Chain Verification")
    print("To verify on-chain:")
    print(f"1. Visit: {EXPLORER_URL}")
    print(f"2. Search for your PieceCID: {result.piece_cid}\n")
    print("Note: It may take a few minutes for storage deals to appear in the explorer.")

    print("\n✅ Upload complete! Your file is now stored on decentralized infrastructure.")
    print(f"\nSave your PieceCID: {result.piece_cid}")
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Upload a file to Filecoin and print its PieceCID")
    ap.add_argument("path", help="file to upload (at least 127 bytes)")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
