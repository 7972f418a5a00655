import pytest

from bootstrapper.catalog import CatalogFile
from bootstrapper.context import CancellationToken
from bootstrapper.integrity import verify_file_integrity

from conftest import RecordingProgress, sha256

FILES = {"app.exe": b"binary", "data/config.json": b"{}", "data/lang/en.txt": b"hello"}


@pytest.fixture
def install_dir(tmp_path):
    root = tmp_path / "install"
    for path, data in FILES.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return root


@pytest.fixture
def catalog_files():
    return [CatalogFile(path=p, hash=sha256(d)) for p, d in FILES.items()]


@pytest.mark.asyncio
async def test_all_files_intact(install_dir, catalog_files):
    progress = RecordingProgress()
    assert await verify_file_integrity(progress, install_dir, catalog_files)
    assert progress.percents == [33, 66, 100]
    assert progress.line2 == "Installation verified successfully."
    assert progress.line3 == "All 3 files are intact."


@pytest.mark.asyncio
async def test_uppercase_catalog_hash_accepted(install_dir):
    files = [CatalogFile(path="app.exe", hash=sha256(b"binary").upper())]
    assert await verify_file_integrity(RecordingProgress(), install_dir, files)


@pytest.mark.asyncio
async def test_missing_file_short_circuits(install_dir, catalog_files):
    (install_dir / "app.exe").unlink()
    progress = RecordingProgress()
    assert not await verify_file_integrity(progress, install_dir, catalog_files)
    assert progress.line3 == "Missing file: app.exe"
    assert progress.percents == []


@pytest.mark.asyncio
async def test_corrupted_file(install_dir, catalog_files):
    (install_dir / "data" / "config.json").write_bytes(b"tampered")
    progress = RecordingProgress()
    assert not await verify_file_integrity(progress, install_dir, catalog_files)
    assert progress.line3 == "Integrity check failed: data/config.json"
    assert progress.percents == [33]


@pytest.mark.asyncio
async def test_empty_file_list_fails(install_dir):
    assert not await verify_file_integrity(RecordingProgress(), install_dir, [])


@pytest.mark.asyncio
async def test_cancelled_before_first_file(install_dir, catalog_files):
    token = CancellationToken()
    token.cancel()
    progress = RecordingProgress()
    assert not await verify_file_integrity(progress, install_dir, catalog_files, token)
    assert progress.percents == []


@pytest.mark.asyncio
async def test_verification_is_read_only(install_dir, catalog_files):
    before = sorted((p, p.stat().st_mtime_ns) for p in install_dir.rglob("*"))
    for _ in range(2):
        assert await verify_file_integrity(RecordingProgress(), install_dir, catalog_files)
    assert sorted((p, p.stat().st_mtime_ns) for p in install_dir.rglob("*")) == before
