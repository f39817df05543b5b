"""Extraction of directory layers pushed as tar archives."""

import gzip
import io
import logging
import tarfile
import zlib
from pathlib import Path

from ..exceptions import ArchiveError
from ..utils.paths import resolve_within

logger = logging.getLogger(__name__)

_ARCHIVE_ERRORS = (
    tarfile.TarError,
    EOFError,
    zlib.error,
    gzip.BadGzipFile,
    FileExistsError,
    IsADirectoryError,
    NotADirectoryError,
)


def _member_name(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return "" if name == "." else name


def _strip_root(name: str, root_name: str | None) -> str:
    """Drop the archived directory name when the archive carries one."""
    if root_name and (name == root_name or name.startswith(f"{root_name}/")):
        return name[len(root_name) :].lstrip("/")
    return name


def _detect_root(members: list[tarfile.TarInfo], title: str | None) -> str | None:
    if not title:
        return None
    names = [_member_name(member.name) for member in members]
    names = [name for name in names if name]
    if names and all(name == title or name.startswith(f"{title}/") for name in names):
        return title
    return None


def extract_layer_archive(
    data: bytes, target: Path, title: str | None = None
) -> list[Path]:
    """Extract a tar or tar.gz layer into ``target``.

    Directory layers pushed by ORAS clients either archive the directory
    contents directly or nest them under the directory name given by the
    layer title; the latter prefix is removed so both land at ``target``.

    Args:
        data: Raw layer bytes
        target: Extraction root
        title: Layer title annotation, if any

    Returns:
        Paths of the extracted regular files

    Raises:
        ArchiveError: If the archive is unreadable, truncated, holds links or
            devices, or has members clashing as file and directory
        PathEscapeError: If a member would land outside ``target``
    """
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tar:
            members = tar.getmembers()
            root_name = _detect_root(members, title)
            written: list[Path] = []

            for member in members:
                name = _strip_root(_member_name(member.name), root_name)
                if not name:
                    continue

                if not (member.isfile() or member.isdir()):
                    raise ArchiveError(
                        f"Unsupported archive member {member.name}: "
                        "only files and directories are allowed"
                    )

                destination = resolve_within(target, name)
                if member.isdir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue

                file_obj = tar.extractfile(member)
                if file_obj is None:
                    raise ArchiveError(f"Could not extract {member.name}")
                destination.parent.mkdir(parents=True, exist_ok=True)
                with file_obj, open(destination, "wb") as out:
                    out.write(file_obj.read())
                written.append(destination)

            logger.debug("Extracted %d files into %s", len(written), target)
            return written
    except _ARCHIVE_ERRORS as e:
        raise ArchiveError(f"Failed to read layer archive: {e}") from e
