# src/synapse_ops/walkthroughs/streaming.py
"""Large file handling with progress.

  generate  write a test file of --size-mb MiB
  upload    read a file in chunks, upload it through a CDN data set, save the PieceCID
  download  fetch a PieceCID, write it in chunks and verify its SHA-256

The SDK takes and returns whole payloads, so progress covers the local
chunked reads and writes, plus the stored/committed stages the SDK reports.
"""

from __future__ import annotations

import argparse
import hashlib
import logging
import random
import sys
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from synapse_ops.config import load_settings
from synapse_ops.errors import OperationError, PreconditionError
from synapse_ops.structured_logging import log_event
from synapse_ops.units import KIB, MIB, format_bytes
from synapse_ops.walkthroughs import common
from synapse_ops.walkthroughs.first_upload import MIN_UPLOAD_BYTES

log = logging.getLogger("synapse_ops.walkthroughs.streaming")

CHUNK_SIZE = 64 * KIB
MAX_UPLOAD_BYTES = 200 * MIB
PROGRESS_WIDTH = 40

DEFAULT_FILE = "large-file.bin"
DEFAULT_CID_FILE = "streaming-piece-cid.txt"

ProgressCallback = Callable[[int, int], None]

STAGE_MESSAGES = {
    "stored": "✓ Stored with provider. PieceCID: {}",
    "committed": "✓ Piece added to data set. Tx: {}",
}


def render_progress(done: int, total: int, width: int = PROGRESS_WIDTH) -> str:
    frac = 1.0 if total <= 0 else min(1.0, done / total)
    filled = int(frac * width)
    return f"[{'█' * filled}{'░' * (width - filled)}] {frac * 100:5.1f}% ({format_bytes(done)}/{format_bytes(total)})"


def console_progress(label: str) -> ProgressCallback:
    def _show(done: int, total: int) -> None:
        end = "\n" if done >= total else ""
        print(f"\r  {label} {render_progress(done, total)}", end=end, flush=True)

    return _show


def iter_chunks(data: bytes, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    for i in range(0, len(data), chunk_size):
        yield data[i : i + chunk_size]


def read_chunked(path: Path, *, on_progress: Optional[ProgressCallback] = None, chunk_size: int = CHUNK_SIZE) -> bytes:
    total = path.stat().st_size
    parts: List[bytes] = []
    done = 0
    with path.open("rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            parts.append(chunk)
            done += len(chunk)
            if on_progress is not None:
                on_progress(done, total)
    if on_progress is not None and total == 0:
        on_progress(0, 0)
    return b"".join(parts)


def write_chunked(path: Path, data: bytes, *, on_progress: Optional[ProgressCallback] = None) -> str:
    """Write data chunk by chunk and return its SHA-256 hex digest."""
    digest = hashlib.sha256()
    done = 0
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        for chunk in iter_chunks(data):
            f.write(chunk)
            digest.update(chunk)
            done += len(chunk)
            if on_progress is not None:
                on_progress(done, len(data))
    return digest.hexdigest()


def file_sha256(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def check_upload_size(size: int) -> None:
    if size < MIN_UPLOAD_BYTES:
        raise PreconditionError(
            "file_too_small",
            f"File is {size} bytes; minimum upload size is {MIN_UPLOAD_BYTES} bytes",
            hint="Pad the file or choose a larger one.",
        )
    if size > MAX_UPLOAD_BYTES:
        raise PreconditionError(
            "file_too_large",
            f"File is {format_bytes(size)}; maximum upload size is {format_bytes(MAX_UPLOAD_BYTES)}",
            hint="Split the file into pieces of at most 200 MiB.",
        )


async def cmd_generate(args: argparse.Namespace) -> int:
    size = int(args.size_mb * MIB)
    check_upload_size(size)
    out = Path(args.output)
    rng = random.Random(args.seed)
    print(f"Generating {format_bytes(size)} test file at {out}...")
    data = rng.randbytes(size)
    digest = write_chunked(out, data, on_progress=console_progress("Writing"))
    print(f"SHA-256: {digest}\n")
    print("✅ Test file ready!")
    log_event(log, "streaming_file_generated", path=str(out), size=size)
    return 0


async def cmd_upload(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        raise PreconditionError("file_not_found", f"File not found: {path}", hint="Run the generate command first or pass an existing file.")
    check_upload_size(path.stat().st_size)

    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    common.section("Step 1: Preflight")
    await common.require_funded(client)
    await common.require_operator_approval(client)
    print("✓ Payment account funded and operator approved\n")

    common.section("Step 2: Read File")
    data = read_chunked(path, on_progress=console_progress("Reading"))
    digest = hashlib.sha256(data).hexdigest()
    print(f"File: {path.name} ({format_bytes(len(data))})")
    print(f"SHA-256: {digest}\n")

    common.section("Step 3: Upload via CDN")
    ctx = await client.create_context({"type": "streaming", "filename": path.name}, with_cdn=True)
    print(f"Data set: {ctx.data_set_id}  Provider: {ctx.provider}")

    async def on_stage(stage: str, value: str) -> None:
        print(f"  {STAGE_MESSAGES.get(stage, stage + ': {}').format(value)}")

    try:
        result = await ctx.upload(data, on_stage=on_stage)
    except Exception as e:
        raise OperationError.wrap("upload_failed", e) from e
    print(f"\nPieceCID: {result.piece_cid}")
    print(f"Size: {result.size} bytes")

    cid_file = Path(args.cid_file)
    cid_file.write_text(result.piece_cid + "\n", encoding="utf-8")
    print(f"PieceCID saved to {cid_file}\n")
    log_event(log, "streaming_upload_complete", piece_cid=result.piece_cid, size=result.size, sha256=digest)
    print("✅ Upload complete!")
    return 0


def resolve_piece_cid(piece_cid: Optional[str], cid_file: Path) -> str:
    if piece_cid:
        return piece_cid
    if not cid_file.is_file():
        raise PreconditionError("missing_piece_cid", f"No PieceCID given and {cid_file} not found", hint="Run the upload command first.")
    cid = cid_file.read_text(encoding="utf-8").strip()
    if not cid:
        raise PreconditionError("missing_piece_cid", f"{cid_file} is empty", hint="Run the upload command first.")
    return cid


async def cmd_download(args: argparse.Namespace) -> int:
    piece_cid = resolve_piece_cid(args.piece_cid, Path(args.cid_file))
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    common.section("Step 1: Download")
    print(f"Requesting PieceCID: {piece_cid}...")
    try:
        data = await client.download(piece_cid)
    except Exception as e:
        raise OperationError.wrap("download_failed", e) from e
    print(f"✓ Received {format_bytes(len(data))}\n")

    common.section("Step 2: Write to Disk")
    out = Path(args.output)
    digest = write_chunked(out, data, on_progress=console_progress("Writing"))
    print(f"Saved to: {out}")
    print(f"SHA-256: {digest}\n")

    common.section("Step 3: Verify")
    if not args.original:
        print("No original file given (--original); skipping verification.")
        return 0
    original = Path(args.original)
    if not original.is_file():
        print(f"⚠️  Original file not found: {original}", file=sys.stderr)
        return 0
    expected = file_sha256(original)
    if expected != digest:
        print("❌ VERIFICATION FAILED", file=sys.stderr)
        print(f"Expected SHA-256: {expected}", file=sys.stderr)
        log_event(log, "streaming_verification_failed", level=logging.ERROR, piece_cid=piece_cid)
        return 1
    print("✅ VERIFICATION SUCCESSFUL")
    print("SHA-256 of the downloaded file matches the original.")
    log_event(log, "streaming_verification_ok", piece_cid=piece_cid, size=len(data))
    return 0


COMMANDS = {
    "generate": cmd_generate,
    "upload": cmd_upload,
    "download": cmd_download,
}


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Large file upload and download with progress")
    sub = ap.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="write a test file")
    gen.add_argument("--size-mb", dest="size_mb", type=float, default=10.0, help="file size in MiB (default 10)")
    gen.add_argument("--output", default=DEFAULT_FILE)
    gen.add_argument("--seed", type=int, default=0)

    up = sub.add_parser("upload", help="upload a file through a CDN data set")
    up.add_argument("file", nargs="?", default=DEFAULT_FILE)
    up.add_argument("--cid-file", dest="cid_file", default=DEFAULT_CID_FILE, help="where to save the PieceCID")

    down = sub.add_parser("download", help="download a piece and verify it")
    down.add_argument("piece_cid", nargs="?", default=None, help="PieceCID (default: read from --cid-file)")
    down.add_argument("--cid-file", dest="cid_file", default=DEFAULT_CID_FILE)
    down.add_argument("--output", default="downloaded-large-file.bin")
    down.add_argument("--original", default="", help="file to compare against")

    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    handler = COMMANDS[args.command]
    return common.run_main(lambda: handler(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
