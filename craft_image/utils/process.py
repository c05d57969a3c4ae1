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

"""Utilities for executing subprocesses and capturing their output streams."""

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

Command = Sequence[str | Path]

logger = logging.getLogger(__name__)

# Compatibility with subprocess.DEVNULL
DEVNULL = subprocess.DEVNULL


@dataclass
class ProcessResult:
    """Describes the outcome of a process."""

    returncode: int
    stdout: bytes
    stderr: bytes
    command: Command

    def check_returncode(self) -> None:
        """Raise an exception if the process returned non-zero."""
        if self.returncode != 0:
            raise ProcessError(self)

    def stdout_text(self) -> str:
        """Return the standard output decoded as text."""
        return self.stdout.decode(errors="replace")

    def stderr_text(self) -> str:
        """Return the standard error decoded as text."""
        return self.stderr.decode(errors="replace")


def run(
    command: Command,
    *,
    cwd: Path | None = None,
    check: bool = True,
) -> ProcessResult:
    """Execute a subprocess and collect its output.

    The standard input of the child process is closed, and its standard
    output and standard error streams are captured separately.

    :param command: Command to execute.
    :param cwd: Path to execute in.
    :param check: If True, a ProcessError exception will be raised if ``command``
        returns a non-zero return code.

    :raises ProcessError: If process exits with a non-zero return code.
    :raises OSError: If the specified executable is not found.

    :return: A description of the process' outcome.
    :rtype: ProcessResult
    """
    logger.debug("execute %s", " ".join(str(c) for c in command))
    result_sp = subprocess.run(
        [str(c) for c in command],
        stdin=DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        check=False,
    )
    result = ProcessResult(
        result_sp.returncode, result_sp.stdout, result_sp.stderr, command
    )

    if check:
        result.check_returncode()

    return result


@dataclass
class ProcessError(Exception):
    """Simple error for failed processes.

    Generally raised if the return code of a process is non-zero.
    """

    result: ProcessResult
