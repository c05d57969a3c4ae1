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

"""OCI whiteout naming helpers.

Layer archives use marker files to record deletions from older layers.
Relevant OCI documentation available at:
https://github.com/opencontainers/image-spec/blob/main/layer.md#whiteouts
"""

import posixpath

WHITEOUT_PREFIX = ".wh."

OPAQUE_MARKER = ".wh..wh..opq"


def is_opaque_marker(path: str) -> bool:
    """Verify if the given path is an OCI opaque directory marker.

    :param path: The path to verify.

    :returns: Whether the path marks its parent directory as opaque.
    """
    return posixpath.basename(path) == OPAQUE_MARKER


def is_whiteout_marker(path: str) -> bool:
    """Verify if the given path corresponds to an OCI whiteout file.

    :param path: The path to verify.

    :returns: Whether the path marks a sibling as deleted.
    """
    name = posixpath.basename(path)
    return name.startswith(WHITEOUT_PREFIX) and name != OPAQUE_MARKER


def whiteout(path: str) -> str:
    """Convert the given path to an OCI whiteout file name.

    :param path: The file path to white out.

    :returns: The corresponding OCI whiteout file name.
    """
    parent, name = posixpath.split(path)
    return posixpath.join(parent, WHITEOUT_PREFIX + name)


def whited_out_path(marker: str) -> str:
    """Find the path hidden by a whiteout file.

    :param marker: The whiteout file to process.

    :returns: The path that was whited out.
    """
    parent, name = posixpath.split(marker)
    if not name.startswith(WHITEOUT_PREFIX) or name == OPAQUE_MARKER:
        raise ValueError("argument is not an OCI whiteout file")

    return posixpath.normpath(posixpath.join(parent, name[len(WHITEOUT_PREFIX) :]))


def opaque_marker(directory: str) -> str:
    """Return the OCI opaque directory marker.

    :param directory: The directory to mark as opaque.

    :returns: The corresponding OCI opaque directory marker path.
    """
    return posixpath.join(directory, OPAQUE_MARKER)
