import hashlib
import logging
import os
from pathlib import Path
from typing import BinaryIO, Union

from .. import constants
from ..io.archive import iter_tree
from ..exceptions import ArchiveError

logger = logging.getLogger(__name__)


class ContentHasher:
    """
    Computes cache keys from file content.

    Only bytes (and, inside a directory, the layout relative to the copied
    root) are hashed. Permissions, timestamps and the destination path are
    left out so the same content always produces the same key.
    """

    def __init__(self, algorithm: str = "sha256", chunk_size: int = constants.HASH_CHUNK_SIZE):
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def _new(self):
        return hashlib.new(self.algorithm)

    def hash_stream(self, stream: BinaryIO) -> str:
        digest = self._new()
        for chunk in iter(lambda: stream.read(self.chunk_size), b""):
            digest.update(chunk)
        return digest.hexdigest()

    def hash_file(self, path: Union[str, os.PathLike]) -> str:
        try:
            with open(path, "rb") as f:
                return self.hash_stream(f)
        except OSError as e:
            raise ArchiveError(f"Could not hash '{path}': {e}") from e

    def hash_tree(self, root: Union[str, os.PathLike]) -> str:
        root = Path(root)
        digest = self._new()
        try:
            for path in iter_tree(root):
                rel = path.relative_to(root).as_posix().encode()
                if path.is_symlink():
                    digest.update(b"L\0" + rel + b"\0" + os.readlink(path).encode() + b"\0")
                elif path.is_dir():
                    digest.update(b"D\0" + rel + b"\0")
                elif path.is_file():
                    digest.update(b"F\0" + rel + b"\0" + bytes.fromhex(self.hash_file(path)))
        except OSError as e:
            raise ArchiveError(f"Could not hash '{root}': {e}") from e
        return digest.hexdigest()

    def hash_link(self, path: Union[str, os.PathLike]) -> str:
        """A symlink is copied as a link, so its target text is what gets hashed."""
        try:
            target = os.readlink(path)
        except OSError as e:
            raise ArchiveError(f"Could not hash '{path}': {e}") from e
        digest = self._new()
        digest.update(b"L\0" + target.encode())
        return digest.hexdigest()

    def hash_path(self, path: Union[str, os.PathLike]) -> str:
        path = Path(path)
        if path.is_symlink():
            return self.hash_link(path)
        if path.is_dir():
            return self.hash_tree(path)
        return self.hash_file(path)

    def copy_key(self, path: Union[str, os.PathLike]) -> str:
        key = f"{constants.COPY_KEY_PREFIX} {self.hash_path(path)}"
        logger.debug(f"[Hasher] {path} -> {key}")
        return key
