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

"""Extract the merged filesystem of a saved container image."""

from .archive import ArchiveEntry, ArchiveReader, EntryKind, TarArchiveReader
from .digest import LayerDigest, apply_layers, survivors
from .errors import ImageError
from .extractor import extract_layers
from .image import ExtractOptions, extract_container_image, extract_image_archive
from .layers import CatalogEntry, LayerCatalog, parse_layers
from .manifest import ManifestRecord, read_manifest, select_record

try:
    from ._version import __version__
except ImportError:  # pragma: no cover
    from importlib.metadata import version, PackageNotFoundError

    try:
        __version__ = version("craft_image")
    except PackageNotFoundError:
        __version__ = "dev"


__all__ = [
    "__version__",
    "ArchiveEntry",
    "ArchiveReader",
    "CatalogEntry",
    "EntryKind",
    "ExtractOptions",
    "ImageError",
    "LayerCatalog",
    "LayerDigest",
    "ManifestRecord",
    "TarArchiveReader",
    "apply_layers",
    "extract_container_image",
    "extract_image_archive",
    "extract_layers",
    "parse_layers",
    "read_manifest",
    "select_record",
    "survivors",
]
