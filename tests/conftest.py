import hashlib
import io
import json
import zipfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from bootstrapper.catalog import BranchInfo, Catalog, CatalogFile, VersionInfo
from bootstrapper.codec import encode_catalog
from bootstrapper.context import CancellationToken, InstallContext
from bootstrapper.models import BootstrapperConfig, InstallOptions
from bootstrapper.store import MemoryStore


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_zip(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Zip bytes from an ordered mapping; a None value is a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            if data is None:
                zf.writestr(name if name.endswith("/") else name + "/", b"")
            else:
                zf.writestr(name, data)
    return buffer.getvalue()


def make_version(files: Dict[str, bytes], release_path: str, archive: bytes) -> VersionInfo:
    return VersionInfo(
        release_path=release_path,
        release_hash=sha256(archive),
        files=tuple(CatalogFile(path=p, hash=sha256(d)) for p, d in files.items()),
        timestamp="1700000000",
    )


class RecordingProgress:
    """Progress sink that records everything and acknowledges as soon as asked."""

    def __init__(self, confirm_answer: bool = True, acknowledge: bool = True):
        self.line1 = ""
        self.line2 = ""
        self.line3 = ""
        self.percents: List[int] = []
        self.marquee = True
        self.cancel_text = "Cancel"
        self.history: List[tuple] = []
        self.shown = 0
        self.closed = 0
        self.questions: List[str] = []
        self.confirm_answer = confirm_answer
        self.acknowledge = acknowledge
        self.user_cancelled = False

    def set_lines(self, line1: str = "", line2: str = "", line3: str = "") -> None:
        self.line1, self.line2, self.line3 = line1, line2, line3
        self.history.append((line1, line2, line3))

    def set_percent(self, percent: int) -> None:
        self.percents.append(percent)

    def set_marquee(self, marquee: bool) -> None:
        self.marquee = marquee

    def set_cancel_text(self, text: str) -> None:
        self.cancel_text = text
        if text == "Close" and self.acknowledge:
            self.user_cancelled = True

    def cancelled(self) -> bool:
        return self.user_cancelled

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.confirm_answer

    def show(self) -> None:
        self.shown += 1

    def close(self) -> None:
        self.closed += 1


class ReleaseServer:
    """Serves a catalog and release archives from memory."""

    def __init__(self):
        self.catalog: Optional[bytes] = None
        self.archives: Dict[str, bytes] = {}
        self.requests: List[tuple] = []
        self.catalog_status = 200
        self.omit_length = False

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/catalog.json", self._catalog)
        app.router.add_route("HEAD", "/releases/{tail:.*}", self._head)
        app.router.add_get("/releases/{tail:.*}", self._archive, allow_head=False)
        return app

    async def _catalog(self, request: web.Request) -> web.Response:
        self.requests.append(("GET", request.path))
        if self.catalog is None or self.catalog_status != 200:
            return web.Response(status=self.catalog_status if self.catalog is not None else 404)
        return web.Response(body=self.catalog, content_type="application/json")

    async def _head(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(("HEAD", request.path))
        data = self.archives.get(request.path)
        if data is None:
            return web.Response(status=404)
        if self.omit_length:
            # No length: the response falls back to chunked transfer encoding.
            return web.StreamResponse(status=200)
        return web.Response(body=data, content_type="application/zip")

    async def _archive(self, request: web.Request) -> web.Response:
        self.requests.append(("GET", request.path))
        data = self.archives.get(request.path)
        if data is None:
            return web.Response(status=404)
        return web.Response(body=data, content_type="application/zip")


@asynccontextmanager
async def serve(release_server: ReleaseServer):
    server = TestServer(release_server.app())
    await server.start_server()
    try:
        yield str(server.make_url("/"))
    finally:
        await server.close()


@pytest.fixture
def release_server():
    return ReleaseServer()


@pytest.fixture
def app_files():
    return {"app.exe": b"application binary v1.2.0", "Assets/readme.txt": b"hello"}


@pytest.fixture
def published(release_server, app_files):
    """A server publishing main v1.2.0 of ``app_files``."""
    archive = build_zip({"Assets/": None, **app_files})
    release_path = "/releases/main/v1.2.0.zip"
    info = make_version(app_files, release_path, archive)
    branch = BranchInfo(name="main", current_version="1.2.0", versions={"1.2.0": info})
    release_server.archives[release_path] = archive
    release_server.catalog = encode_catalog(Catalog(branches={"main": branch}))
    return info


@pytest.fixture
def program_files(tmp_path):
    root = tmp_path / "Program Files"
    root.mkdir()
    return root


@pytest.fixture
def config(program_files, tmp_path):
    return BootstrapperConfig(
        install=InstallOptions(app_name="App", publisher="Publisher", executable_name="app.exe"),
        install_root=program_files,
        shortcut_path=tmp_path / "menu" / "App.desktop",
        log_name="",
        launch_after_install=False,
        post_uninstall_url=None,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def runner_executable(tmp_path):
    """The running program, kept outside the install directory."""
    path = tmp_path / "runner" / "dboot.exe"
    path.parent.mkdir()
    path.write_bytes(b"runner")
    return path


@pytest.fixture
def progress():
    return RecordingProgress()


@pytest.fixture
def cancel():
    return CancellationToken()


@pytest.fixture
def context(config, store, runner_executable):
    return InstallContext(config=config, store=store, executable_path=runner_executable)


def catalog_json(document: dict) -> bytes:
    return json.dumps(document).encode("utf-8")
