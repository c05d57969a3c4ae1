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

"""Craft image errors."""

import dataclasses
from collections.abc import Sequence
from typing import Optional


@dataclasses.dataclass(repr=True)
class ImageError(Exception):
    """Unexpected error.

    :param brief: Brief description of error.
    :param details: Detailed information.
    :param resolution: Recommendation, if any.
    """

    brief: str
    details: Optional[str] = None
    resolution: Optional[str] = None

    def __str__(self) -> str:
        components = [self.brief]

        if self.details:
            components.append(self.details)

        if self.resolution:
            components.append(self.resolution)

        return "\n".join(components)


class NotFoundError(ImageError):
    """Base class for missing archive contents."""


class ManifestNotFound(NotFoundError):
    """The image archive has no manifest.

    :param archive: The image archive path.
    """

    def __init__(self, archive: str):
        self.archive = archive
        brief = f"Image archive {archive!r} has no manifest."
        resolution = "Make sure the archive was created with 'docker image save'."

        super().__init__(brief=brief, resolution=resolution)


class ImageNotFound(NotFoundError):
    """No manifest record matches the requested image.

    :param image: The image reference.
    :param available: The tags listed in the archive manifest.
    """

    def __init__(self, image: str, available: Sequence[str] = ()):
        self.image = image
        self.available = list(available)
        brief = f"Archive manifest does not contain image tag {image!r}."
        details = None
        if self.available:
            details = "Available tags: " + ", ".join(self.available)

        super().__init__(brief=brief, details=details)


class LayerNotFound(NotFoundError):
    """One or more layers listed in the manifest are missing from the archive.

    :param layers: The names of the missing layers.
    """

    def __init__(self, layers: Sequence[str]):
        self.layers = list(layers)
        brief = "Could not find information for all layers."
        details = "Missing layers: " + ", ".join(self.layers)

        super().__init__(brief=brief, details=details)


class FormatError(ImageError):
    """Base class for malformed archive contents."""


class ManifestFormatError(FormatError):
    """The archive manifest does not have the expected shape.

    :param message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid archive manifest: {message}."

        super().__init__(brief=brief)


class ArchiveFormatError(FormatError):
    """An archive could not be decoded.

    :param name: The archive file or layer name.
    :param message: The error message.
    """

    def __init__(self, name: str, message: str):
        self.name = name
        self.message = message
        brief = f"Failed to read archive {name!r}: {message}."
        resolution = "Make sure the image archive is not truncated or corrupted."

        super().__init__(brief=brief, resolution=resolution)


class PathEscapeError(ImageError):
    """An output path would fall outside the destination directory.

    :param path: The offending path.
    :param destination: The destination directory.
    """

    def __init__(self, path: str, destination: str):
        self.path = path
        self.destination = destination
        brief = f"Directory escape detected for {path!r}."
        details = f"Path resolves outside of {destination!r}."

        super().__init__(brief=brief, details=details)


class ArchiveIOError(ImageError):
    """The image archive file could not be opened or read.

    :param archive: The image archive path.
    :param message: The error message.
    """

    def __init__(self, archive: str, message: str):
        self.archive = archive
        self.message = message
        brief = f"Failed to open image archive {archive!r}: {message}."
        resolution = "Make sure the archive path is correct and readable."

        super().__init__(brief=brief, resolution=resolution)


class ExtractionIOError(ImageError):
    """A filesystem operation failed while writing the extracted image.

    :param path: The path being written.
    :param operation: The operation that failed.
    :param message: The error message.
    """

    def __init__(self, path: str, operation: str, message: str):
        self.path = path
        self.operation = operation
        self.message = message
        brief = f"Failed to {operation} {path!r}: {message}."
        resolution = "Make sure the destination directory is writable."

        super().__init__(brief=brief, resolution=resolution)


class CommandError(ImageError):
    """An external command exited with an error.

    :param command: The executable name.
    :param command_args: The command arguments.
    :param returncode: The command exit code.
    :param stdout: The captured standard output.
    :param stderr: The captured standard error.
    """

    def __init__(
        self,
        *,
        command: str,
        command_args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = command
        self.command_args = list(command_args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        brief = f"Command {command!r} failed with code {returncode}."
        details = stderr.strip() or None

        super().__init__(brief=brief, details=details)
