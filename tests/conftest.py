# tests/conftest.py

import io
import itertools
import posixpath
import tarfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from boxbuilder.config import Boxfile
from boxbuilder.constants import NO_CACHE_ENV
from boxbuilder.datacls import ImageConfig, ImageRecord, ImageSummary
from boxbuilder.exceptions import RuntimeCommunicationError
from boxbuilder.runtime import Runtime


class FakeRuntime(Runtime):
    """
    In-memory container runtime.

    Images carry a flat ``files`` mapping (absolute path -> bytes) so that
    copy steps can be checked by reading files back out of committed images.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.images: Dict[str, ImageRecord] = {}
        self.files: Dict[str, Dict[str, bytes]] = {}
        self.tags: Dict[str, str] = {}
        self.registry: Dict[str, ImageConfig] = {}
        self.containers: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self.executed: List[List[str]] = []
        self.failures: Dict[str, Exception] = {}
        self.fail_clean_remove = False
        self.exit_code = 0
        self.output: List[bytes] = [b"hello\n"]
        self.removed = threading.Event()

    # --- Test helpers ---
    def add_image(self, ref: str, files: Optional[Dict[str, bytes]] = None, **config) -> str:
        image_id = f"sha256:base{next(self._ids)}"
        self.images[image_id] = ImageRecord(id=image_id, config=ImageConfig(image=image_id, **config))
        self.files[image_id] = dict(files or {})
        self.tags[ref] = image_id
        return image_id

    def called(self, op: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == op]

    def _record(self, op: str, *args):
        with self._lock:
            self.calls.append((op, *args))
        if op in self.failures:
            raise self.failures[op]

    def _lookup(self, ref: str) -> str:
        image_id = self.tags.get(ref, ref)
        if image_id not in self.images:
            raise RuntimeCommunicationError("inspect image", ref, "No such image")
        return image_id

    # --- Containers ---
    def create_container(self, config: ImageConfig) -> str:
        self._record("create", config.image)
        image_id = self._lookup(config.image)
        container_id = f"c{next(self._ids):064d}"
        with self._lock:
            self.containers[container_id] = {
                "config": config.model_copy(deep=True),
                "image": image_id,
                "files": dict(self.files[image_id]),
            }
        return container_id

    def start_container(self, container_id: str):
        self._record("start", container_id)
        self.executed.append(list(self.containers[container_id]["config"].cmd or []))

    def attach_container(self, container_id: str):
        self._record("attach", container_id)
        return iter(list(self.output))

    def wait_container(self, container_id: str) -> int:
        self._record("wait", container_id)
        return self.exit_code

    def remove_container(self, container_id: str, force: bool = False) -> bool:
        self._record("remove", container_id, force)
        if self.fail_clean_remove and not force:
            raise RuntimeCommunicationError("remove container", container_id, "device or resource busy")
        with self._lock:
            if self.containers.pop(container_id, None) is None:
                return False
        self.removed.set()
        return True

    def commit_container(self, container_id: str, config: ImageConfig, comment: str) -> str:
        self._record("commit", container_id, comment)
        container = self.containers.get(container_id)
        if container is None:
            raise RuntimeCommunicationError("commit container", container_id, "No such container")
        image_id = f"sha256:img{next(self._ids)}"
        self.images[image_id] = ImageRecord(
            id=image_id,
            parent_id=container["image"],
            comment=comment,
            config=config.model_copy(update={"image": image_id}, deep=True),
        )
        self.files[image_id] = dict(container["files"])
        return image_id

    def copy_from_container(self, container_id: str, path: str):
        self._record("copy_from", container_id, path)
        files = self.containers[container_id]["files"]
        if path not in files:
            raise RuntimeCommunicationError("copy from container", container_id, f"Could not find {path}")
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            info = tarfile.TarInfo(posixpath.basename(path))
            info.size = len(files[path])
            tar.addfile(info, io.BytesIO(files[path]))
        data = buf.getvalue()
        return iter([data[:512], data[512:]])

    def copy_to_container(self, container_id: str, path: str, archive: Path):
        self._record("copy_to", container_id, path)
        files = self.containers[container_id]["files"]
        with tarfile.open(archive) as tar:
            for member in tar:
                if member.isreg():
                    name = posixpath.join(path, member.name)
                    files[name] = tar.extractfile(member).read()

    # --- Images ---
    def list_images(self) -> List[ImageSummary]:
        self._record("list")
        return [ImageSummary(id=r.id, parent_id=r.parent_id) for r in self.images.values()]

    def inspect_image(self, image_id: str) -> ImageRecord:
        self._record("inspect", image_id)
        return self.images[self._lookup(image_id)]

    def has_image(self, ref: str) -> bool:
        self._record("has", ref)
        return self.tags.get(ref, ref) in self.images

    def pull_image(self, ref: str):
        self._record("pull", ref)
        if ref not in self.registry:
            yield {"error": f"pull access denied for {ref}"}
            return
        yield {"status": "Pulling from library", "id": ref}
        config = self.registry[ref]
        self.add_image(ref, user=config.user, working_dir=config.working_dir, cmd=config.cmd)
        yield {"status": f"Downloaded newer image for {ref}"}

    def tag_image(self, image_id: str, ref: str):
        self._record("tag", image_id, ref)
        self.tags[ref] = image_id


@pytest.fixture(autouse=True)
def cache_enabled(monkeypatch):
    """Builds in tests start with caching on, whatever the outer environment says."""
    # set first so that a value written by `boxb build -n` is undone too
    monkeypatch.setenv(NO_CACHE_ENV, "")
    monkeypatch.delenv(NO_CACHE_ENV)


@pytest.fixture
def runtime():
    rt = FakeRuntime()
    rt.add_image("debian:bookworm", cmd=["bash"])
    return rt


@pytest.fixture
def sink() -> List[bytes]:
    """Collects step output; pass ``sink.append`` as the output callable."""
    return []


@pytest.fixture
def write_boxfile(tmp_path: Path):
    """A pytest fixture to create a Boxfile in a temporary build context."""
    def _write(text: str) -> Boxfile:
        path = tmp_path / "Boxfile.yml"
        path.write_text(text)
        return Boxfile(path)
    return _write
