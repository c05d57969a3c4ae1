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

"""Resolve layer overlay semantics from layer catalogs.

Layers are folded into a digest from the newest to the oldest. Each layer
is first filtered against what the newer layers already declared, then the
surviving entries are added to the digest:

- a whiteout marker hides its target path, whatever its type, and
  anything below it in all older layers;
- an opaque marker hides everything below its directory in all older
  layers, but not the directory entry itself;
- a regular file hides older regular files at the same path.

Directories and symbolic links are never hidden by a previously claimed
path, only by whiteouts of their own path or of a directory containing them.
"""

import logging
import posixpath
from collections.abc import Iterable, Set

from craft_image.archive import EntryKind
from craft_image.layers import CatalogEntry, LayerCatalog

logger = logging.getLogger(__name__)


class LayerDigest:
    """Occlusion state accumulated from the layers processed so far.

    Entries are only ever added to the digest, never removed.
    """

    def __init__(self) -> None:
        self._whiteouts: set[str] = set()
        self._path_whiteouts: set[str] = set()
        self._claimed_paths: set[str] = set()

    @property
    def whiteouts(self) -> Set[str]:
        """The whited out paths, rooted at ``/``."""
        return frozenset(self._whiteouts)

    @property
    def claimed_paths(self) -> Set[str]:
        """The file and symlink paths declared by processed layers."""
        return frozenset(self._claimed_paths)

    def is_entry_allowed(self, entry: CatalogEntry) -> bool:
        """Verify if an entry is visible through the layers already processed.

        :param entry: The entry to verify.

        :returns: Whether the entry survives.
        """
        if self.directory_match(entry.parent_dir):
            return False

        # Opaque directories keep their own entry.
        if "/" + entry.path in self._path_whiteouts:
            return False

        if entry.kind != EntryKind.FILE:
            return True

        return not (
            entry.path in self._claimed_paths or "/" + entry.path in self._whiteouts
        )

    def add_entry(self, entry: CatalogEntry) -> None:
        """Fold a surviving entry into the digest.

        :param entry: The entry to add.
        """
        if entry.whiteout_target:
            self._whiteouts.add(entry.whiteout_target)
            if not entry.is_opaque_whiteout:
                self._path_whiteouts.add(entry.whiteout_target)
        elif entry.kind in (EntryKind.FILE, EntryKind.SYMLINK):
            self._claimed_paths.add(entry.path)

    def directory_match(self, candidate: str) -> bool:
        """Verify if a directory is at or below any whited out path.

        The match is done on whole path components, so ``/a/b/c`` matches a
        whiteout of ``/a/b``, but ``/a/b`` doesn't match ``/a/b/c`` and
        ``/a/bc`` doesn't match ``/a/b``.

        :param candidate: The directory to verify, rooted at ``/``.

        :returns: Whether the directory is hidden.
        """
        for item in self._whiteouts:
            if candidate == item or posixpath.commonpath([candidate, item]) == item:
                return True
        return False

    def apply(self, catalog: LayerCatalog) -> None:
        """Filter a layer catalog and add its survivors to the digest.

        Layers must be applied from the newest to the oldest.

        :param catalog: The layer catalog, modified in place.
        """
        allowed = [e for e in catalog.entries if self.is_entry_allowed(e)]
        logger.debug(
            "layer %s: %d of %d entries visible",
            catalog.name,
            len(allowed),
            len(catalog.entries),
        )
        catalog.entries = allowed

        for entry in allowed:
            self.add_entry(entry)


def apply_layers(catalogs: list[LayerCatalog]) -> LayerDigest:
    """Filter all layer catalogs, from the newest to the oldest.

    :param catalogs: The layer catalogs in manifest order, oldest first.

    :returns: The digest holding the resulting occlusion state.
    """
    digest = LayerDigest()
    for catalog in reversed(catalogs):
        digest.apply(catalog)
    return digest


def survivors(catalogs: Iterable[LayerCatalog]) -> dict[str, CatalogEntry]:
    """Map each surviving path to the entry that declares it.

    Whiteout markers are not included. When more than one layer declares a
    path, the newest declaration wins.

    :param catalogs: The filtered layer catalogs, oldest first.

    :returns: A dictionary of archive-relative paths to entries.
    """
    entry_map: dict[str, CatalogEntry] = {}
    for catalog in catalogs:
        for entry in catalog.entries:
            if not entry.is_whiteout:
                entry_map[entry.path] = entry
    return entry_map
