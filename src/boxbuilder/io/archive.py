"""
Transfer archives for moving files in and out of containers.

- iter_tree: deterministic walk of a host directory
- ArchivePackager: host file/directory -> tar archive with remapped entry names
- read_member: pull a single file's bytes out of a runtime archive stream
"""

import logging
import os
import posixpath
import stat
import tarfile
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from .. import constants
from ..exceptions import ArchiveError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def iter_tree(root: Path) -> Iterator[Path]:
    """
    Yield ``root`` and everything below it in sorted order.

    Symlinked directories are yielded but not descended into.
    """
    yield root
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        base = Path(dirpath)
        for name in sorted(dirnames + filenames):
            yield base / name


def _raise_walk_error(err: OSError):
    raise err


def _tar_info(path: Path, name: str) -> Optional[tarfile.TarInfo]:
    st = os.lstat(path)
    info = tarfile.TarInfo(name)
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = int(st.st_mtime)
    if stat.S_ISDIR(st.st_mode):
        info.type = tarfile.DIRTYPE
    elif stat.S_ISREG(st.st_mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
    elif stat.S_ISLNK(st.st_mode):
        info.type = tarfile.SYMTYPE
        info.linkname = os.readlink(path)
    else:
        return None
    return info


class ArchivePackager:
    """
    Serialises host paths into tar archives ready to be extracted at the
    container root.

    Entry names are rewritten relative to the target mount point: for a
    directory every entry becomes ``<target>/<path relative to context>``, a
    single file becomes exactly ``<target>``.
    """

    def __init__(self, context: PathLike = "."):
        self.context = Path(context)

    def resolve(self, source: PathLike) -> Path:
        path = Path(source)
        if not path.is_absolute():
            path = self.context / path
        return path

    def entry_name(self, path: Path, target: str) -> str:
        rel = os.path.relpath(path, self.context)
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise ArchiveError(f"'{path}' is outside of the build context '{self.context}'")
        return posixpath.normpath(posixpath.join(target, Path(rel).as_posix()))

    def pack(self, source: PathLike, target: str) -> Path:
        """
        Write the archive to a temporary file and return its path.

        The caller owns the file; see ``packed`` for automatic removal. Nothing
        is left behind when packaging fails.
        """
        src = self.resolve(source)
        fd, name = tempfile.mkstemp(prefix=constants.ARCHIVE_PREFIX, suffix=".tar")
        archive = Path(name)
        try:
            with os.fdopen(fd, "wb") as f, tarfile.open(fileobj=f, mode="w", format=tarfile.PAX_FORMAT) as tar:
                if src.is_dir() and not src.is_symlink():
                    for path in iter_tree(src):
                        self._add(tar, path, self.entry_name(path, target))
                else:
                    self._add(tar, src, posixpath.normpath(target))
        except (OSError, tarfile.TarError) as e:
            archive.unlink(missing_ok=True)
            raise ArchiveError(f"Could not package '{source}': {e}") from e
        except ArchiveError:
            archive.unlink(missing_ok=True)
            raise
        logger.debug(f"[Archive] Packaged '{source}' -> '{target}' in {archive}")
        return archive

    @contextmanager
    def packed(self, source: PathLike, target: str) -> Iterator[Path]:
        archive = self.pack(source, target)
        try:
            yield archive
        finally:
            archive.unlink(missing_ok=True)

    def _add(self, tar: tarfile.TarFile, path: Path, name: str):
        info = _tar_info(path, name)
        if info is None:
            logger.warning(f"[Archive] Skipping '{path}': not a file, directory or symlink")
            return
        logger.info(f"--- Copy: {path} -> {name}")
        if info.isreg():
            with open(path, "rb") as f:
                tar.addfile(info, f)
        else:
            tar.addfile(info)


def read_member(chunks: Iterable[bytes], path: str) -> bytes:
    """
    Return the content of ``path`` from an archive stream produced by the
    runtime's copy-from operation (entries are named after the basename).
    """
    wanted = posixpath.basename(path.rstrip("/"))
    with tempfile.SpooledTemporaryFile(max_size=16 * 1024 * 1024) as spool:
        for chunk in chunks:
            spool.write(chunk)
        spool.seek(0)
        try:
            with tarfile.open(fileobj=spool, mode="r:") as tar:
                for member in tar:
                    if member.name.rstrip("/") != wanted:
                        continue
                    if not member.isreg():
                        raise ArchiveError(f"'{path}' is not a regular file")
                    f = tar.extractfile(member)
                    return f.read()
        except tarfile.TarError as e:
            raise ArchiveError(f"Truncated or invalid archive for '{path}': {e}") from e
    raise ArchiveError(f"Could not find '{path}' in container")
