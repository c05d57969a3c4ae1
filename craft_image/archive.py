# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2025 Canonical Ltd.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""Archive entry sources.

An archive is consumed as a forward-only sequence of entries. The top-level
image archive is a seekable file on disk; each layer is an archive nested in
one of its entries and is decoded as a stream over that entry's content.
"""

import enum
import logging
import re
import tarfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType
from typing import IO, Optional

from overrides import overrides

from craft_image import errors

logger = logging.getLogger(__name__)


class EntryKind(enum.Enum):
    """The type of an archive entry."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"
    OTHER = "other"


def normalize_name(name: str) -> str:
    """Normalize an archive member name.

    Leading ``/`` and ``./`` sequences are removed and trailing separators
    dropped. Parent directory references are kept so that path confinement
    checks can reject them.

    :param name: The member name as stored in the archive.

    :returns: The archive-relative path of the member.
    """
    name = re.sub(r"^(\.?/)+", "", name)
    name = name.rstrip("/")
    if name == ".":
        return ""
    return name


def _entry_kind(member: tarfile.TarInfo) -> EntryKind:
    if member.isreg():
        return EntryKind.FILE
    if member.isdir():
        return EntryKind.DIRECTORY
    if member.issym():
        return EntryKind.SYMLINK
    if member.islnk():
        return EntryKind.HARDLINK
    return EntryKind.OTHER


class ArchiveEntry:
    """An entry in an archive.

    The entry content can only be read while the archive iteration is
    positioned on it.

    :param tar: The tarfile containing this entry.
    :param member: The tarfile member information.
    """

    def __init__(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        self._tar = tar
        self._member = member
        self.name = normalize_name(member.name)
        self.kind = _entry_kind(member)
        self.size = member.size
        self.link_target = member.linkname
        self.mode = member.mode

    def __repr__(self) -> str:
        return f"ArchiveEntry(name={self.name!r}, kind={self.kind!r})"

    def open(self) -> Optional[IO[bytes]]:
        """Return a readable byte stream with the entry content.

        Symbolic links in a seekable archive are followed to the member
        they point to.

        :returns: The content stream, or None if the entry has no content.
        """
        try:
            return self._tar.extractfile(self._member)
        except (KeyError, tarfile.TarError) as err:
            raise errors.ArchiveFormatError(self.name, str(err)) from err

    def nested(self) -> "NestedArchiveReader":
        """Return a reader over this entry's content decoded as an archive.

        :raises ArchiveFormatError: If the entry has no content.
        """
        stream = self.open()
        if stream is None:
            raise errors.ArchiveFormatError(self.name, "entry has no content")

        return NestedArchiveReader(stream, self.name)


class ArchiveReader(ABC):
    """Produce the entries of an archive in archive order."""

    @abstractmethod
    def __iter__(self) -> Iterator[ArchiveEntry]:
        """Iterate over the archive entries."""


def _iter_members(tar: tarfile.TarFile, name: str) -> Iterator[ArchiveEntry]:
    try:
        for member in tar:
            yield ArchiveEntry(tar, member)
    except tarfile.TarError as err:
        raise errors.ArchiveFormatError(name, str(err)) from err


class TarArchiveReader(ArchiveReader):
    """Read entries from an archive file on disk.

    The reader is a context manager, and the archive file is closed when
    the context exits.

    :param path: The path to the archive file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._tar: Optional[tarfile.TarFile] = None

    def __enter__(self) -> "TarArchiveReader":
        logger.debug("open archive %s", self._path)
        try:
            self._tar = tarfile.open(self._path, "r:*")
        except OSError as err:
            raise errors.ArchiveIOError(
                str(self._path), err.strerror or str(err)
            ) from err
        except tarfile.TarError as err:
            raise errors.ArchiveFormatError(str(self._path), str(err)) from err

        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the archive file."""
        if self._tar is not None:
            self._tar.close()
            self._tar = None

    @overrides
    def __iter__(self) -> Iterator[ArchiveEntry]:
        if self._tar is None:
            raise RuntimeError("archive is not open")

        return _iter_members(self._tar, str(self._path))


class NestedArchiveReader(ArchiveReader):
    """Read entries from an archive embedded in another archive's entry.

    The embedded archive is decoded as a forward-only stream, possibly
    compressed.

    :param fileobj: The stream containing the embedded archive.
    :param name: The name of the entry holding the embedded archive.
    """

    def __init__(self, fileobj: IO[bytes], name: str) -> None:
        self._fileobj = fileobj
        self._name = name

    @overrides
    def __iter__(self) -> Iterator[ArchiveEntry]:
        try:
            tar = tarfile.open(fileobj=self._fileobj, mode="r|*")
        except tarfile.TarError as err:
            raise errors.ArchiveFormatError(self._name, str(err)) from err

        with tar:
            yield from _iter_members(tar, self._name)
