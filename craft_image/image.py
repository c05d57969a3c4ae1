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

"""Extract the merged filesystem of a container image."""

import dataclasses
import logging
import os
import tempfile
from pathlib import Path

from craft_image import digest, extractor, layers, manifest
from craft_image.docker import Docker

logger = logging.getLogger(__name__)

DOCKER_CLI_ENV = "CRAFT_IMAGE_DOCKER"


def default_docker_cli() -> str:
    """Return the docker executable set in the environment, or ``docker``."""
    return os.environ.get(DOCKER_CLI_ENV) or "docker"


@dataclasses.dataclass(frozen=True)
class ExtractOptions:
    """Image extraction settings.

    :cvar pull: Pull the image before saving it.
    :cvar docker_cli: The docker executable used to pull and save images.
    """

    pull: bool = False
    docker_cli: str = dataclasses.field(default_factory=default_docker_cli)


def extract_image_archive(
    archive_path: Path, directory: Path, image: str
) -> list[layers.LayerCatalog]:
    """Extract the filesystem of an image from a saved image archive.

    :param archive_path: The archive created by ``docker image save``.
    :param directory: The destination directory.
    :param image: The image reference to extract.

    :returns: The layer catalogs, filtered to the entries that were written.
    """
    records = manifest.read_manifest(archive_path)
    record = manifest.select_record(records, image)

    # Get the raw layer contents (before whiteout processing)
    catalogs = layers.parse_layers(archive_path, record.layers)

    # Apply whiteouts and duplicate file removal
    digest.apply_layers(catalogs)

    if logger.isEnabledFor(logging.DEBUG):
        for catalog in catalogs:
            logger.debug("layer %s", catalog.name)
            for entry in catalog.entries:
                logger.debug("  %s %s", entry.kind.value, entry.path)

    extractor.extract_layers(archive_path, directory, catalogs)
    return catalogs


def extract_container_image(
    image: str, directory: Path, *, options: ExtractOptions
) -> None:
    """Save a local image to a temporary archive and extract it.

    :param image: The image reference.
    :param directory: The destination directory.
    :param options: The extraction settings.

    :raises CommandError: If pulling or saving the image fails.
    """
    docker = Docker(cli=options.docker_cli)

    if options.pull:
        logger.info("Pulling image %s", image)
        result = docker.pull_image(image, quiet=True)
        pulled = result.stdout_text().strip()
        if pulled:
            image = pulled.splitlines()[-1]
        logger.info("Using actual image name: %s", image)

    with tempfile.TemporaryDirectory(prefix="craft-image-") as work_dir:
        archive_path = Path(work_dir, "image.tar")
        logger.info("Saving image archive to %s", archive_path)
        docker.save_image(image, output=archive_path)

        extract_image_archive(archive_path, directory, image)
