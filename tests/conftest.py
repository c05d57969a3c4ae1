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

import io
import json
import tarfile
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import pytest

from craft_image import whiteouts

_DEFAULT_TAGS = ("test:latest",)


def _tarinfo(name: str, kind: bytes, mode: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = kind
    info.mode = mode
    return info


def build_layer(entries: Iterable[Sequence[Any]], *, compression: str = "") -> bytes:
    """Create a layer archive in memory.

    Entries are tuples starting with a kind and a path:

    - ``("dir", path[, mode])``
    - ``("file", path[, data[, mode]])``
    - ``("symlink", path, target)``
    - ``("hardlink", path, target)``
    - ``("fifo", path)``
    - ``("whiteout", path)``: marker hiding ``path`` in older layers
    - ``("opaque", path)``: marker hiding older contents of directory ``path``
    """
    buffer = io.BytesIO()
    mode = f"w:{compression}" if compression else "w"
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for kind, path, *rest in entries:
            if kind == "dir":
                info = _tarinfo(path, tarfile.DIRTYPE, rest[0] if rest else 0o755)
                tar.addfile(info)
            elif kind in ("file", "whiteout", "opaque"):
                if kind == "whiteout":
                    path = whiteouts.whiteout(path)
                elif kind == "opaque":
                    path = whiteouts.opaque_marker(path)
                data = rest[0] if rest else b""
                file_mode = rest[1] if len(rest) > 1 else 0o644
                info = _tarinfo(path, tarfile.REGTYPE, file_mode)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
            elif kind == "symlink":
                info = _tarinfo(path, tarfile.SYMTYPE, 0o777)
                info.linkname = rest[0]
                tar.addfile(info)
            elif kind == "hardlink":
                info = _tarinfo(path, tarfile.LNKTYPE, 0o644)
                info.linkname = rest[0]
                tar.addfile(info)
            elif kind == "fifo":
                tar.addfile(_tarinfo(path, tarfile.FIFOTYPE, 0o644))
            else:
                raise ValueError(f"unknown entry kind {kind!r}")

    return buffer.getvalue()


class ImageArchiveBuilder:
    """Create saved image archives for tests.

    :param path: The archive file to write.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.layers: list[tuple[str, bytes]] = []

    def add_layer(
        self,
        entries: Iterable[Sequence[Any]],
        *,
        name: str | None = None,
        compression: str = "",
    ) -> str:
        """Add a layer archive and return its name."""
        if name is None:
            name = f"layer{len(self.layers) + 1}/layer.tar"
        self.layers.append((name, build_layer(entries, compression=compression)))
        return name

    def write(
        self,
        repo_tags: Sequence[str] | None = _DEFAULT_TAGS,
        *,
        manifest: Any = None,
        layer_names: Sequence[str] | None = None,
        layer_links: dict[str, str] | None = None,
        omit_manifest: bool = False,
    ) -> Path:
        """Write the image archive.

        :param repo_tags: The tags of the single manifest record.
        :param manifest: Raw manifest data replacing the generated one.
        :param layer_names: Manifest layer list replacing the added layers.
        :param layer_links: Extra layer entries as symlinks to other entries.
        :param omit_manifest: Don't write a manifest entry.
        """
        if layer_names is None:
            layer_names = [name for name, _ in self.layers]
            if layer_links:
                layer_names.extend(layer_links)

        if manifest is None:
            manifest = [
                {
                    "Config": "config.json",
                    "RepoTags": list(repo_tags) if repo_tags is not None else None,
                    "Layers": list(layer_names),
                }
            ]

        with tarfile.open(self.path, "w") as tar:
            for name, data in self.layers:
                directory = name.rsplit("/", maxsplit=1)[0]
                if directory != name:
                    tar.addfile(_tarinfo(directory, tarfile.DIRTYPE, 0o755))
                info = _tarinfo(name, tarfile.REGTYPE, 0o644)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))

            for name, target in (layer_links or {}).items():
                info = _tarinfo(name, tarfile.SYMTYPE, 0o777)
                info.linkname = target
                tar.addfile(info)

            config = b"{}"
            info = _tarinfo("config.json", tarfile.REGTYPE, 0o644)
            info.size = len(config)
            tar.addfile(info, io.BytesIO(config))

            if not omit_manifest:
                data = (
                    manifest
                    if isinstance(manifest, bytes)
                    else json.dumps(manifest).encode()
                )
                info = _tarinfo("manifest.json", tarfile.REGTYPE, 0o644)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))

        return self.path


@pytest.fixture
def new_dir(monkeypatch, tmp_path):
    """Change to a new temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def image_builder(tmp_path) -> ImageArchiveBuilder:
    """Return a builder writing an image archive in a temporary directory."""
    return ImageArchiveBuilder(tmp_path / "image.tar")


@pytest.fixture
def layer_data():
    """Return the layer archive factory."""
    return build_layer
