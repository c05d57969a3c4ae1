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

"""Obtain image archives through the docker command line tool."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from craft_image import errors
from craft_image.utils import process

logger = logging.getLogger(__name__)


class Docker:
    """Run docker commands and capture their output.

    :param cli: The docker executable.
    """

    def __init__(self, cli: str = "docker") -> None:
        self.cli = cli

    def run(self, subcommand: str, args: list[str]) -> process.ProcessResult:
        """Execute a docker subcommand.

        :param subcommand: The docker subcommand, such as ``image``.
        :param args: The subcommand arguments.

        :returns: The process outcome.

        :raises CommandError: If the command exits with an error.
        """
        command_args = [subcommand, *args]
        try:
            return process.run([self.cli, *command_args])
        except process.ProcessError as err:
            raise errors.CommandError(
                command=self.cli,
                command_args=command_args,
                returncode=err.result.returncode,
                stdout=err.result.stdout_text(),
                stderr=err.result.stderr_text(),
            ) from err

    def version(self) -> dict[str, Any]:
        """Return the docker client and server version information."""
        result = self.run("version", ["--format", "json"])
        return json.loads(result.stdout_text())

    def pull_image(
        self,
        name: str,
        *,
        all_tags: Optional[bool] = None,
        disable_content_trust: Optional[bool] = None,
        platform: Optional[str] = None,
        quiet: Optional[bool] = None,
    ) -> process.ProcessResult:
        """Pull an image from a registry.

        :param name: The image reference.
        :param all_tags: Pull all tagged images in the repository.
        :param disable_content_trust: Skip image verification.
        :param platform: The platform to pull, if the image is multi-platform.
        :param quiet: Only print the pulled image name.
        """
        args: list[str] = []
        if all_tags is not None:
            args.append(f"--all-tags={str(all_tags).lower()}")
        if disable_content_trust is not None:
            args.append(
                f"--disable-content-trust={str(disable_content_trust).lower()}"
            )
        if platform is not None:
            args.extend(["--platform", platform])
        if quiet is not None:
            args.append(f"--quiet={str(quiet).lower()}")

        return self.run("image", ["pull", *args, name])

    def save_image(
        self, name: str, *, output: Optional[Path] = None
    ) -> process.ProcessResult:
        """Save an image to a tar archive.

        :param name: The image reference.
        :param output: The archive file to write.
        """
        args: list[str] = []
        if output is not None:
            args.extend(["--output", str(output)])

        return self.run("image", ["save", *args, name])
