from __future__ import annotations

from pathlib import Path

from synapse_ops.testing import FakeSynapse, fake_piece_cid
from synapse_ops.walkthroughs import datasets, download_verify, first_upload

ONE = 10**18
CONTENT = ("Filecoin walkthrough sample file.\n" * 10).encode("utf-8")


def _write(tmp_path: Path, name: str, data: bytes) -> Path:
    p = tmp_path / name
    p.write_bytes(data)
    return p


# ----------------------------
# first_upload
# ----------------------------


def test_first_upload_prints_piece_cid(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    path = _write(tmp_path, "sample.txt", CONTENT)

    assert first_upload.main([str(path)]) == 0

    cid = fake_piece_cid(CONTENT)
    assert client.state.pieces[cid] == CONTENT
    out = capsys.readouterr().out
    assert f"PieceCID: {cid}" in out
    assert f"Size: {len(CONTENT)} bytes" in out


def test_first_upload_guards(use_client, tmp_path, capsys) -> None:
    path = _write(tmp_path, "sample.txt", CONTENT)

    client = use_client(FakeSynapse.funded(balance=0))
    assert first_upload.main([str(path)]) == 1
    assert "upload" not in client.state.calls
    assert "Payment account has no balance" in capsys.readouterr().err

    client = use_client(FakeSynapse.funded(balance=ONE, approved=False))
    assert first_upload.main([str(path)]) == 1
    assert "upload" not in client.state.calls
    assert "Operator allowances are not set" in capsys.readouterr().err

    client = use_client(FakeSynapse.funded(balance=ONE))
    client.set_approval(lockup_allowance=0)
    assert first_upload.main([str(path)]) == 1


def test_first_upload_rejects_small_or_missing_file(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))

    small = _write(tmp_path, "small.txt", b"x" * 126)
    assert first_upload.main([str(small)]) == 1
    assert "minimum upload size is 127 bytes" in capsys.readouterr().err

    assert first_upload.main([str(tmp_path / "nope.txt")]) == 1
    assert "File not found" in capsys.readouterr().err
    assert "upload" not in client.state.calls

    exact = _write(tmp_path, "exact.txt", b"x" * 127)
    assert first_upload.main([str(exact)]) == 0


def test_first_upload_failure_exits_1(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    client.fail("upload", RuntimeError("provider unavailable"))
    assert first_upload.main([str(_write(tmp_path, "sample.txt", CONTENT))]) == 1
    assert "provider unavailable" in capsys.readouterr().err


# ----------------------------
# download_verify
# ----------------------------


def _stored(client: FakeSynapse, data: bytes) -> str:
    cid = fake_piece_cid(data)
    client.state.pieces[cid] = data
    return cid


def test_download_verify_success(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    cid = _stored(client, CONTENT)
    original = _write(tmp_path, "sample.txt", CONTENT)
    out_path = tmp_path / "out" / "downloaded.bin"

    assert download_verify.main([cid, "--original", str(original), "--output", str(out_path)]) == 0
    assert out_path.read_bytes() == CONTENT
    out = capsys.readouterr().out
    assert "VERIFICATION SUCCESSFUL" in out
    assert "--- File Content ---" in out


def test_download_verify_mismatch_exits_1(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    cid = _stored(client, CONTENT)
    original = _write(tmp_path, "sample.txt", CONTENT + b"!")

    assert download_verify.main([cid, "--original", str(original)]) == 1
    assert "VERIFICATION FAILED" in capsys.readouterr().err
    assert (tmp_path / "downloaded_file.bin").read_bytes() == CONTENT


def test_download_verify_missing_original_only_warns(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    cid = _stored(client, CONTENT)
    assert download_verify.main([cid, "--original", str(tmp_path / "gone.txt")]) == 0
    assert "Could not find original file" in capsys.readouterr().err


def test_download_verify_unknown_piece_exits_1(use_client, capsys) -> None:
    use_client(FakeSynapse.funded(balance=ONE))
    assert download_verify.main(["bafkzcibdunknown"]) == 1
    assert "piece not found" in capsys.readouterr().err


def test_verify_bytes() -> None:
    assert download_verify.verify_bytes(b"abc", b"abc")
    assert not download_verify.verify_bytes(b"abc", b"abd")
    assert not download_verify.verify_bytes(b"abc", b"abcd")


# ----------------------------
# datasets
# ----------------------------


def test_dataset_metadata_and_short_cid() -> None:
    md = datasets.dataset_metadata(project="p", category="c", version="2.0", now=lambda: 0.0)
    assert md == {"project": "p", "category": "c", "version": "2.0", "created": "1970-01-01"}
    assert datasets.short_cid("x" * 30) == "x" * 30
    long_cid = "a" * 20 + "b" * 20 + "c" * 10
    assert datasets.short_cid(long_cid) == "a" * 20 + "..." + "c" * 10


def test_datasets_uploads_every_file_into_one_context(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    files = {f"file{i}.txt": (f"dataset file {i}\n" * 20).encode("utf-8") for i in range(3)}
    for name, data in files.items():
        (data_dir / name).write_bytes(data)

    assert datasets.main([str(data_dir), "--project", "demo"]) == 0

    (ctx,) = client.contexts
    assert ctx.metadata["project"] == "demo"
    assert ctx.metadata["category"] == "documentation"
    assert ctx.with_cdn is False
    for data in files.values():
        assert client.state.pieces[fake_piece_cid(data)] == data

    out = capsys.readouterr().out
    assert "Successfully uploaded 3 files" in out
    assert "Total Providers: 1" in out


def test_datasets_skips_failed_file(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "a.txt").write_bytes(b"a" * 200)
    (data_dir / "b.txt").write_bytes(b"tiny")
    (data_dir / "c.txt").write_bytes(b"c" * 200)

    assert datasets.main([str(data_dir)]) == 0
    assert len(client.state.pieces) == 2
    captured = capsys.readouterr()
    assert "Successfully uploaded 2 files" in captured.out
    assert "Upload failed" in captured.err


def test_datasets_missing_directory_exits_1(use_client, tmp_path, capsys) -> None:
    client = use_client(FakeSynapse.funded(balance=ONE))
    assert datasets.main([str(tmp_path / "absent")]) == 1
    assert client.state.calls == []
    assert "data directory not found" in capsys.readouterr().err


def test_datasets_requires_funding(use_client, tmp_path) -> None:
    client = use_client(FakeSynapse.funded(balance=0))
    (tmp_path / "data").mkdir()
    assert datasets.main([str(tmp_path / "data")]) == 1
    assert "create_context" not in client.state.calls
