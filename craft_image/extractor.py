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

"""Write the surviving layer entries to a destination directory."""

import contextlib
import logging
import os
import shutil
from collections.abc import Iterator
from pathlib import Path

from craft_image import errors
from craft_image.archive import ArchiveEntry, EntryKind, TarArchiveReader
from craft_image.digest import survivors
from craft_image.layers import CatalogEntry, LayerCatalog

logger = logging.getLogger(__name__)


def is_confined(path: str, root: str) -> bool:
    """Verify if a normalized absolute path is the root or is below it.

    :param path: The path to verify.
    :param root: The root directory.

    :returns: Whether the path is inside the root directory.
    """
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_link_target(link_path: str, target: str, root: str) -> str:
    """Resolve the destination of a symbolic link inside the root directory.

    Absolute targets are relative to the root directory, relative targets
    are relative to the directory containing the link.

    :param link_path: The normalized output path of the link.
    :param target: The link target as stored in the archive.
    :param root: The root directory.

    :returns: The normalized absolute path the link points to.

    :raises PathEscapeError: If the target is outside the root directory.
    """
    if os.path.isabs(target):
        resolved = os.path.normpath(os.path.join(root, target.lstrip("/")))
    else:
        resolved = os.path.normpath(os.path.join(os.path.dirname(link_path), target))

    if not is_confined(resolved, root):
        raise errors.PathEscapeError(resolved, root)

    return resolved


@contextlib.contextmanager
def _fs_operation(path: str, operation: str) -> Iterator[None]:
    try:
        yield
    except OSError as err:
        raise errors.ExtractionIOError(
            path, operation, err.strerror or str(err)
        ) from err


class _Extractor:
    """Materialize archive entries under a root directory.

    :param root: The absolute, normalized destination directory.
    """

    def __init__(self, root: str) -> None:
        self._root = root
        self._real_root = os.path.realpath(root)
        self._directory_modes: dict[str, int] = {}

    def output_path(self, name: str) -> str:
        """Compute and verify the output path of an archive entry."""
        output_path = os.path.normpath(os.path.join(self._root, name))
        if not is_confined(output_path, self._root):
            raise errors.PathEscapeError(name, self._root)
        return output_path

    def _check_real_path(self, path: str, name: str) -> None:
        # Symbolic links already on disk must not lead outside the root.
        if not is_confined(os.path.realpath(path), self._real_root):
            raise errors.PathEscapeError(name, self._root)

    def _make_parents(self, output_path: str) -> None:
        parent = os.path.dirname(output_path)
        self._check_real_path(parent, parent)
        with _fs_operation(parent, "create directory"):
            os.makedirs(parent, exist_ok=True)

    def write(self, entry: CatalogEntry, nested_entry: ArchiveEntry) -> None:
        """Write an archive entry according to its cataloged type.

        :param entry: The surviving catalog entry.
        :param nested_entry: The layer archive entry holding its data.
        """
        output_path = self.output_path(nested_entry.name)

        if entry.kind == EntryKind.DIRECTORY:
            self._write_directory(output_path, nested_entry)
        elif entry.kind == EntryKind.FILE:
            self._write_file(output_path, nested_entry)
        elif entry.kind == EntryKind.SYMLINK:
            self._write_symlink(output_path, nested_entry)

    def _write_directory(self, output_path: str, nested_entry: ArchiveEntry) -> None:
        logger.debug("Creating directory: %s", output_path)
        self._check_real_path(output_path, nested_entry.name)
        with _fs_operation(output_path, "create directory"):
            os.makedirs(output_path, exist_ok=True)

        if nested_entry.mode:
            self._directory_modes[output_path] = nested_entry.mode

    def _write_file(self, output_path: str, nested_entry: ArchiveEntry) -> None:
        logger.debug("Writing file: %s", output_path)
        self._make_parents(output_path)

        # Never write through a link left by another layer.
        if os.path.islink(output_path):
            with _fs_operation(output_path, "remove"):
                os.unlink(output_path)

        stream = nested_entry.open()
        with _fs_operation(output_path, "write"):
            with open(output_path, "wb") as output_file:
                if stream is not None:
                    with stream:
                        shutil.copyfileobj(stream, output_file)

            if nested_entry.mode:
                os.chmod(output_path, nested_entry.mode)

    def _write_symlink(self, output_path: str, nested_entry: ArchiveEntry) -> None:
        destination = resolve_link_target(
            output_path, nested_entry.link_target, self._root
        )
        logger.debug("Symlink file: %s -> %s", output_path, destination)
        self._make_parents(output_path)

        with _fs_operation(output_path, "remove"):
            try:
                if os.path.isdir(output_path) and not os.path.islink(output_path):
                    os.rmdir(output_path)
                else:
                    os.unlink(output_path)
            except FileNotFoundError:
                pass

        with _fs_operation(output_path, "create symlink"):
            os.symlink(destination, output_path)

    def finish(self) -> None:
        """Apply the deferred directory modes, deepest directories first."""
        for path in sorted(self._directory_modes, reverse=True):
            with _fs_operation(path, "set mode of"):
                os.chmod(path, self._directory_modes[path])


def extract_layers(
    archive_path: Path, directory: Path, catalogs: list[LayerCatalog]
) -> None:
    """Write the entries that survived the layer digest.

    Layer catalogs must have been filtered by the digest before extraction.
    Entries are written as they are found in the image archive; a shadowed
    copy of a path from an older layer is never written. Directory modes are
    applied once all entries are written, so that restrictive modes don't
    prevent writing directory contents.

    :param archive_path: The path to the image archive.
    :param directory: The destination directory.
    :param catalogs: The filtered layer catalogs, oldest first.

    :raises PathEscapeError: If an entry would be written outside the
        destination directory.
    :raises ExtractionIOError: If writing an entry fails.
    """
    root = os.path.normpath(os.path.abspath(directory))
    with _fs_operation(root, "create directory"):
        os.makedirs(root, exist_ok=True)

    entry_map = survivors(catalogs)
    layer_names = {catalog.name for catalog in catalogs if catalog.entries}
    accepted = {
        (entry.layer_name, entry.path)
        for catalog in catalogs
        for entry in catalog.entries
        if not entry.is_whiteout
    }

    extractor = _Extractor(root)

    with TarArchiveReader(archive_path) as reader:
        for entry in reader:
            if entry.kind not in (EntryKind.FILE, EntryKind.SYMLINK):
                continue
            if entry.name not in layer_names:
                continue

            logger.info("Extracting archive %s", entry.name)
            for nested_entry in entry.nested():
                if (entry.name, nested_entry.name) not in accepted:
                    continue

                layer_entry = entry_map.get(nested_entry.name)
                if layer_entry is None or layer_entry.kind != nested_entry.kind:
                    continue

                # Directories may be declared by several layers, anything
                # else is only written from the newest layer declaring it.
                if (
                    layer_entry.kind != EntryKind.DIRECTORY
                    and layer_entry.layer_name != entry.name
                ):
                    continue

                extractor.write(layer_entry, nested_entry)

    extractor.finish()
