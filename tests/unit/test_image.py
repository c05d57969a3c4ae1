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

import logging
import shutil
from pathlib import Path

import pytest
import pytest_subprocess

from craft_image import errors
from craft_image.image import (
    DOCKER_CLI_ENV,
    ExtractOptions,
    extract_container_image,
    extract_image_archive,
)


@pytest.fixture
def archive(image_builder) -> Path:
    image_builder.add_layer(
        [
            ("dir", "etc"),
            ("file", "etc/os-release", b"ID=test\n"),
            ("file", "etc/motd", b"hello\n"),
            ("dir", "bin"),
            ("file", "bin/bash", b"bash", 0o755),
        ]
    )
    image_builder.add_layer(
        [("whiteout", "etc/motd"), ("symlink", "bin/sh", "bash")],
    )
    return image_builder.write(["test:latest", "test:1.0"])


class TestExtractOptions:
    """Extraction settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv(DOCKER_CLI_ENV, raising=False)
        options = ExtractOptions()
        assert options.pull is False
        assert options.docker_cli == "docker"

    def test_docker_cli_from_environment(self, monkeypatch):
        monkeypatch.setenv(DOCKER_CLI_ENV, "/usr/local/bin/podman")
        assert ExtractOptions().docker_cli == "/usr/local/bin/podman"

    def test_empty_environment(self, monkeypatch):
        monkeypatch.setenv(DOCKER_CLI_ENV, "")
        assert ExtractOptions().docker_cli == "docker"

    def test_frozen(self):
        options = ExtractOptions(pull=True, docker_cli="docker")
        with pytest.raises(AttributeError):
            options.pull = False  # type: ignore[misc]


class TestExtractImageArchive:
    """Extraction of a saved image archive."""

    def test_extract(self, archive, tmp_path):
        dest = tmp_path / "rootfs"

        catalogs = extract_image_archive(archive, dest, "test:1.0")

        assert [c.name for c in catalogs] == ["layer1/layer.tar", "layer2/layer.tar"]
        assert [e.path for e in catalogs[0].entries] == [
            "etc",
            "etc/os-release",
            "bin",
            "bin/bash",
        ]
        assert Path(dest, "etc/os-release").read_text() == "ID=test\n"
        assert Path(dest, "etc/motd").exists() is False
        assert Path(dest, "bin/sh").read_bytes() == b"bash"

    def test_default_registry_prefix(self, archive, tmp_path):
        extract_image_archive(archive, tmp_path / "out", "docker.io/library/test")

        assert Path(tmp_path, "out/bin/bash").is_file()

    def test_image_not_found(self, archive, tmp_path):
        with pytest.raises(errors.ImageNotFound) as raised:
            extract_image_archive(archive, tmp_path / "out", "other")

        assert raised.value.available == ["test:latest", "test:1.0"]
        assert Path(tmp_path, "out").exists() is False

    def test_missing_layer(self, image_builder, tmp_path):
        image_builder.add_layer([("file", "a", b"a")])
        archive = image_builder.write(layer_names=["layer1/layer.tar", "gone.tar"])

        with pytest.raises(errors.LayerNotFound) as raised:
            extract_image_archive(archive, tmp_path / "out", "test")

        assert raised.value.layers == ["gone.tar"]

    def test_debug_listing(self, caplog, archive, tmp_path):
        caplog.set_level(logging.DEBUG, logger="craft_image")

        extract_image_archive(archive, tmp_path / "out", "test")

        assert "layer layer2/layer.tar" in caplog.messages
        assert "  symlink bin/sh" in caplog.messages
        assert "  file etc/motd" not in caplog.messages


class TestExtractContainerImage:
    """Extraction of an image obtained with docker."""

    @pytest.fixture
    def save_calls(self, fake_process: pytest_subprocess.FakeProcess, archive):
        calls: list[str] = []

        def _save(process):
            output = process.args[4]
            calls.append(output)
            shutil.copyfile(archive, output)

        def register(name: str, cli: str = "docker") -> None:
            output = fake_process.any(min=1, max=1)
            fake_process.register(
                [cli, "image", "save", "--output", output, name],
                callback=_save,
            )

        return register, calls

    def test_extract(self, fake_process, save_calls, tmp_path):
        register, calls = save_calls
        register("test")

        extract_container_image(
            "test", tmp_path / "rootfs", options=ExtractOptions(docker_cli="docker")
        )

        assert Path(tmp_path, "rootfs/etc/os-release").is_file()
        assert len(calls) == 1
        assert Path(calls[0]).name == "image.tar"
        assert Path(calls[0]).parent.name.startswith("craft-image-")
        # the temporary directory is removed
        assert Path(calls[0]).parent.exists() is False

    def test_custom_cli(self, fake_process, save_calls, tmp_path):
        register, calls = save_calls
        register("test:1.0", cli="podman")

        extract_container_image(
            "test:1.0", tmp_path / "rootfs", options=ExtractOptions(docker_cli="podman")
        )

        assert len(calls) == 1

    def test_pull(self, fake_process, save_calls, tmp_path):
        register, calls = save_calls
        fake_process.register(
            ["docker", "image", "pull", "--quiet=true", "test"],
            stdout="docker.io/library/test:latest\n",
        )
        register("docker.io/library/test:latest")

        extract_container_image(
            "test",
            tmp_path / "rootfs",
            options=ExtractOptions(pull=True, docker_cli="docker"),
        )

        assert Path(tmp_path, "rootfs/bin/bash").is_file()
        assert fake_process.call_count(
            ["docker", "image", "pull", "--quiet=true", "test"]
        ) == 1

    def test_pull_error(self, fake_process, tmp_path):
        fake_process.register(
            ["docker", "image", "pull", "--quiet=true", "test"],
            stderr="pull access denied\n",
            returncode=1,
        )

        with pytest.raises(errors.CommandError) as raised:
            extract_container_image(
                "test",
                tmp_path / "rootfs",
                options=ExtractOptions(pull=True, docker_cli="docker"),
            )

        assert raised.value.command_args == ["image", "pull", "--quiet=true", "test"]
        assert Path(tmp_path, "rootfs").exists() is False

    def test_save_error(self, fake_process, tmp_path):
        output = fake_process.any(min=1, max=1)
        fake_process.register(
            ["docker", "image", "save", "--output", output, "x"],
            stderr="No such image: x\n",
            returncode=1,
        )

        with pytest.raises(errors.CommandError) as raised:
            extract_container_image(
                "x", tmp_path / "rootfs", options=ExtractOptions(docker_cli="docker")
            )

        assert raised.value.returncode == 1
        assert raised.value.details == "No such image: x"

    def test_progress_logging(self, caplog, fake_process, save_calls, tmp_path):
        caplog.set_level(logging.INFO, logger="craft_image")
        register, calls = save_calls
        register("test")

        extract_container_image(
            "test", tmp_path / "rootfs", options=ExtractOptions(docker_cli="docker")
        )

        assert f"Saving image archive to {calls[0]}" in caplog.messages
        assert "Extracting archive layer1/layer.tar" in caplog.messages
        assert "Extracting archive layer2/layer.tar" in caplog.messages
