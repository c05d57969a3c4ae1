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

"""Read the manifest of a saved image archive."""

import json
import logging
from pathlib import Path
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from craft_image import errors
from craft_image.archive import EntryKind, TarArchiveReader

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"

DEFAULT_REGISTRY_PREFIX = "docker.io/library/"


class ManifestRecord(BaseModel):
    """An image description in the saved archive manifest.

    :param config: The name of the image configuration entry.
    :param repo_tags: The image references this record was saved as.
    :param layers: The layer archive names, oldest first.
    """

    config: str = Field(alias="Config")
    repo_tags: list[str] | None = Field(default=None, alias="RepoTags")
    layers: list[str] = Field(alias="Layers")

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @classmethod
    def unmarshal(cls, data: dict[str, Any]) -> "ManifestRecord":
        """Create and populate a new record from dictionary data.

        :param data: A dictionary containing the record data.

        :returns: The manifest record.
        """
        return cls.model_validate(data)


def read_manifest(archive_path: Path) -> list[ManifestRecord]:
    """Load the manifest records from a saved image archive.

    :param archive_path: The path to the image archive.

    :returns: The list of manifest records, in manifest order.

    :raises ManifestNotFound: If the archive has no manifest.
    :raises ManifestFormatError: If the manifest is not a list of records.
    """
    logger.info("Parsing archive contents")

    with TarArchiveReader(archive_path) as reader:
        for entry in reader:
            if entry.kind != EntryKind.FILE or entry.name != MANIFEST_NAME:
                continue

            logger.info("Loading manifest")
            stream = entry.open()
            if stream is None:
                break

            with stream:
                try:
                    raw_manifest = json.load(stream)
                except (json.JSONDecodeError, UnicodeDecodeError) as err:
                    raise errors.ManifestFormatError(str(err)) from err

            return _unmarshal_records(raw_manifest)

    raise errors.ManifestNotFound(str(archive_path))


def _unmarshal_records(raw_manifest: Any) -> list[ManifestRecord]:
    if not isinstance(raw_manifest, list):
        raise errors.ManifestFormatError(
            "archive manifest is not an array as expected"
        )

    records: list[ManifestRecord] = []
    for index, data in enumerate(raw_manifest):
        if not isinstance(data, dict):
            raise errors.ManifestFormatError(f"record {index} is not an object")
        try:
            records.append(ManifestRecord.unmarshal(data))
        except pydantic.ValidationError as err:
            fields = ", ".join(
                ".".join(str(loc) for loc in error["loc"]) for error in err.errors()
            )
            raise errors.ManifestFormatError(
                f"record {index} has invalid fields: {fields}"
            ) from err

    return records


def normalize_image_name(image: str) -> str:
    """Remove the default registry prefix from an image reference.

    :param image: The image reference.

    :returns: The short form of the reference, as recorded in saved archives.
    """
    if image.startswith(DEFAULT_REGISTRY_PREFIX):
        return image[len(DEFAULT_REGISTRY_PREFIX) :]
    return image


def _has_tag_or_digest(image: str) -> bool:
    last_component = image.rsplit("/", maxsplit=1)[-1]
    return ":" in last_component or "@" in image


def select_record(records: list[ManifestRecord], image: str) -> ManifestRecord:
    """Find the manifest record saved for the given image reference.

    References without a tag also match the record saved as ``name:latest``.

    :param records: The archive manifest records.
    :param image: The image reference to look for.

    :returns: The first record listing the reference in its tags.

    :raises ImageNotFound: If no record matches the reference.
    """
    short_name = normalize_image_name(image)
    candidates = [short_name]
    if not _has_tag_or_digest(short_name):
        candidates.append(f"{short_name}:latest")

    for candidate in candidates:
        for record in records:
            if record.repo_tags is not None and candidate in record.repo_tags:
                logger.debug("selected manifest record for %s", candidate)
                return record

    available = [tag for record in records for tag in record.repo_tags or []]
    raise errors.ImageNotFound(image, available)
