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

"""Catalog the contents of image layers."""

import dataclasses
import logging
import posixpath
from collections.abc import Sequence
from pathlib import Path

from craft_image import errors, whiteouts
from craft_image.archive import EntryKind, TarArchiveReader

logger = logging.getLogger(__name__)

CATALOG_KINDS = (EntryKind.FILE, EntryKind.DIRECTORY, EntryKind.SYMLINK)


@dataclasses.dataclass(frozen=True)
class CatalogEntry:
    """Metadata of a filesystem entry declared by a layer.

    The parent directory and whiteout target are rooted at ``/``. Whiteout
    markers carry the path they hide in ``whiteout_target``; for any other
    entry it is empty.

    :param layer_name: The name of the layer declaring the entry.
    :param kind: The entry type.
    :param path: The archive-relative path of the entry.
    :param size: The entry content size.
    """

    layer_name: str
    kind: EntryKind
    path: str
    size: int = 0
    parent_dir: str = dataclasses.field(init=False)
    base_name: str = dataclasses.field(init=False)
    whiteout_target: str = dataclasses.field(init=False)
    is_opaque_whiteout: bool = dataclasses.field(init=False)

    def __post_init__(self) -> None:
        parent_dir, base_name = posixpath.split("/" + self.path)
        object.__setattr__(self, "parent_dir", parent_dir)
        object.__setattr__(self, "base_name", base_name)

        if whiteouts.is_opaque_marker(base_name):
            whiteout_target = parent_dir
            is_opaque = True
        elif whiteouts.is_whiteout_marker(base_name):
            whiteout_target = whiteouts.whited_out_path("/" + self.path)
            is_opaque = False
        else:
            whiteout_target = ""
            is_opaque = False

        object.__setattr__(self, "whiteout_target", whiteout_target)
        object.__setattr__(self, "is_opaque_whiteout", is_opaque)

    @property
    def is_whiteout(self) -> bool:
        """Whether this entry is a whiteout marker."""
        return bool(self.whiteout_target)


@dataclasses.dataclass
class LayerCatalog:
    """The entries declared by a single layer.

    :param name: The layer archive name.
    :param entries: The layer entries, in archive order.
    :param loaded: Whether the layer archive was found and parsed.
    """

    name: str
    entries: list[CatalogEntry] = dataclasses.field(default_factory=list)
    loaded: bool = False


def parse_layers(archive_path: Path, layer_names: Sequence[str]) -> list[LayerCatalog]:
    """Catalog the entries of each layer without reading their contents.

    Only regular files, directories and symbolic links are cataloged; other
    entry types are dropped.

    :param archive_path: The path to the image archive.
    :param layer_names: The layer archive names, oldest first.

    :returns: One catalog per layer name, in the same order.

    :raises LayerNotFound: If a layer archive is missing from the image archive.
    """
    logger.info("Parsing layer archives")
    results = [LayerCatalog(name=name) for name in layer_names]

    # A layer listed more than once gets one catalog per position.
    pending: dict[str, list[LayerCatalog]] = {}
    for catalog in results:
        pending.setdefault(catalog.name, []).append(catalog)

    with TarArchiveReader(archive_path) as reader:
        for entry in reader:
            if entry.kind not in (EntryKind.FILE, EntryKind.SYMLINK):
                continue

            targets = pending.pop(entry.name, None)
            if not targets:
                continue

            logger.info("Parsing archive %s", entry.name)
            entries: list[CatalogEntry] = []
            for nested_entry in entry.nested():
                if nested_entry.kind not in CATALOG_KINDS or not nested_entry.name:
                    continue

                entries.append(
                    CatalogEntry(
                        layer_name=entry.name,
                        kind=nested_entry.kind,
                        path=nested_entry.name,
                        size=nested_entry.size,
                    )
                )

            for catalog in targets:
                catalog.entries = list(entries)
                catalog.loaded = True

    missing = list(dict.fromkeys(c.name for c in results if not c.loaded))
    if missing:
        raise errors.LayerNotFound(missing)

    return results
