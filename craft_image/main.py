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

"""Container image extraction command line tool.

This is the main entry point for the craft_image package, invoked when
running `python -mcraft_image`. It saves an image with docker (or reads an
existing image archive) and writes its merged filesystem to a directory.
"""

import argparse
import logging
import sys
from pathlib import Path

import craft_image
import craft_image.errors
from craft_image.image import (
    ExtractOptions,
    default_docker_cli,
    extract_container_image,
    extract_image_archive,
)


def main():
    """Run the command-line interface."""
    options = _parse_arguments()

    if options.version:
        print(f"craft-image {craft_image.__version__}")
        sys.exit()

    if options.trace:
        log_level = logging.DEBUG
    elif options.verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    logging.basicConfig(level=log_level)

    if not options.image or not options.directory:
        print(
            "Error: an image and a destination directory are required.",
            file=sys.stderr,
        )
        sys.exit(4)

    try:
        _extract(options)
    except OSError as err:
        msg = err.strerror or str(err)
        if err.filename:
            msg = f"{err.filename}: {msg}"
        print(f"Error: {msg}.", file=sys.stderr)
        sys.exit(1)
    except craft_image.errors.CommandError as err:
        print(err.command, " ".join(err.command_args), file=sys.stderr)
        if err.stdout:
            print(err.stdout, file=sys.stderr, end="")
        print(err.stderr, file=sys.stderr, end="")
        print(f"Error: {err.brief}", file=sys.stderr)
        sys.exit(2)
    except craft_image.errors.ImageError as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(3)


def _extract(options: argparse.Namespace) -> None:
    directory = Path(options.directory)

    if options.archive:
        extract_image_archive(Path(options.archive), directory, options.image)
        return

    extract_options = ExtractOptions(pull=options.pull, docker_cli=options.docker_cli)
    extract_container_image(options.image, directory, options=extract_options)


def _parse_arguments() -> argparse.Namespace:
    prog = "extract-container-image"
    description = "Extract the contents of a container image to a specific directory."

    parser = argparse.ArgumentParser(prog=prog, description=description, add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help="Show this help message and exit.",
    )
    parser.add_argument(
        "-p",
        "--pull",
        action="store_true",
        help="Pull image before extracting.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output.",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Show debug information for each extracted entry.",
    )
    parser.add_argument(
        "--archive",
        metavar="filename",
        help="Extract from an existing image archive instead of saving the image.",
    )
    parser.add_argument(
        "--docker-cli",
        metavar="path",
        default=default_docker_cli(),
        help="The docker executable. Default is $CRAFT_IMAGE_DOCKER or 'docker'.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Display the craft-image version and exit.",
    )
    parser.add_argument(
        "image",
        metavar="image",
        nargs="?",
        help="The image reference.",
    )
    parser.add_argument(
        "directory",
        metavar="directory",
        nargs="?",
        help="The destination directory.",
    )

    return parser.parse_args()


if __name__ == "__main__":
    main()
