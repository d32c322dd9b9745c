"""Helpers that build test Dockerfiles with docker and with the executor image."""

from __future__ import annotations

import glob
import logging
import os
import signal
import subprocess
import sys
import tarfile
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Sequence

logger = logging.getLogger(__name__)

EXECUTOR_IMAGE = "executor-image"
WARMER_IMAGE = "warmer-image"

DOCKER_PREFIX = "docker-"
KANIKO_PREFIX = "kaniko-"
BUILD_CONTEXT_PATH = "/workspace"
CACHE_DIR = "/workspace/cache"
BASE_IMAGE_TO_CACHE = (
    "gcr.io/google-appengine/debian9@sha256:"
    "1d6a9a6d106bd795098f60f4abb7083626354fa6735e81743c7f8cfca11259f0"
)

# Build arguments used by both docker and executor builds.
ARGS_MAP: dict[str, list[str]] = {
    "Dockerfile_test_run": ["file=/file"],
    "Dockerfile_test_workdir": ["workdir=/arg/workdir"],
    "Dockerfile_test_add": ["file=context/foo"],
    "Dockerfile_test_onbuild": ["file=/tmp/onbuild"],
    "Dockerfile_test_scratch": [
        "image=scratch",
        "hello=hello-value",
        "file=context/foo",
        "file3=context/b*",
    ],
    "Dockerfile_test_multistage": ["file=/foo2"],
}

ADDITIONAL_DOCKER_FLAGS_MAP: dict[str, list[str]] = {
    "Dockerfile_test_target": ["--target=second"],
}

ADDITIONAL_KANIKO_FLAGS_MAP: dict[str, list[str]] = {
    "Dockerfile_test_add": ["--single-snapshot"],
    "Dockerfile_test_scratch": ["--single-snapshot"],
    "Dockerfile_test_target": ["--target=second"],
}

BUCKET_CONTEXT_TESTS = ("Dockerfile_test_copy_bucket",)
REPRODUCIBLE_TESTS = ("Dockerfile_test_reproducible",)

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}


class IntegrationError(RuntimeError):
    """A step of the integration setup failed."""


def _benchmarking() -> bool:
    return os.environ.get("BENCHMARK", "") in _TRUE


def _gcloud_volume() -> str:
    return os.environ.get("HOME", "") + "/.config/gcloud:/root/.config/gcloud"


def run_on_interrupt(callback: Callable[[], None]) -> None:
    """On an interrupt, run callback and exit with status 1."""

    def handler(signum, frame):
        logger.info("Interrupted, cleaning up.")
        callback()
        sys.exit(1)

    signal.signal(signal.SIGINT, handler)


def run_command(args: Sequence[str]) -> bytes:
    """Run a program and return its combined output; raise if it fails."""
    result = subprocess.run(
        list(args), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False
    )
    if result.returncode != 0:
        raise subprocess.CalledProcessError(result.returncode, list(args), output=result.stdout)
    return result.stdout


def create_integration_tarball() -> str:
    """Pack the current directory into a tarball in a new temporary directory."""
    logger.info("Creating tarball of integration test files to use as build context")
    directory = os.getcwd()
    try:
        temp_dir = tempfile.mkdtemp()
    except OSError as err:
        raise IntegrationError(
            f"Failed to create temporary directory to hold tarball: {err}"
        ) from err
    context_file = f"{temp_dir}/context_{time.time_ns()}.tar.gz"
    try:
        with tarfile.open(context_file, "w:gz") as archive:
            archive.add(directory, arcname=".")
    except (OSError, tarfile.TarError) as err:
        raise IntegrationError(
            f"Failed to create build context tarball from integration dir: {err}"
        ) from err
    return context_file


def upload_file_to_bucket(gcs_bucket: str, file_path: str, gcs_path: str) -> str:
    """Copy a file into the bucket and return where it was put."""
    dst = f"{gcs_bucket}/{gcs_path}"
    logger.info("Uploading file at %s to GCS bucket at %s", file_path, dst)
    try:
        run_command(["gsutil", "cp", file_path, dst])
    except (OSError, subprocess.CalledProcessError) as err:
        output = getattr(err, "output", b"") or b""
        logger.error("Error uploading file %s to GCS at %s: %s", file_path, dst, err)
        logger.error("%s", output.decode(errors="replace"))
        raise IntegrationError(f"Failed to copy tarball to GCS bucket {gcs_bucket}: {err}") from err
    return dst


def delete_from_bucket(path: str) -> None:
    """Remove a file given by its full bucket path."""
    try:
        run_command(["gsutil", "rm", path])
    except (OSError, subprocess.CalledProcessError) as err:
        raise IntegrationError(f"Failed to delete file {path} from GCS: {err}") from err


def get_docker_image(image_repo: str, dockerfile: str) -> str:
    """Name of the image docker builds from dockerfile."""
    return (image_repo + DOCKER_PREFIX + dockerfile).lower()


def get_kaniko_image(image_repo: str, dockerfile: str) -> str:
    """Name of the image the executor builds from dockerfile."""
    return (image_repo + KANIKO_PREFIX + dockerfile).lower()


def get_versioned_kaniko_image(image_repo: str, dockerfile: str, version: int) -> str:
    """Name of the nth executor build of dockerfile, for cache tests."""
    return (image_repo + KANIKO_PREFIX + dockerfile + str(version)).lower()


def find_docker_files(dockerfiles_path: str) -> list[str]:
    """Names of the ``Dockerfile_test*`` files in dockerfiles_path."""
    matches = sorted(glob.glob(os.path.join(dockerfiles_path, "Dockerfile_test*")))
    return [os.path.basename(match) for match in matches]


def populate_volume_cache() -> None:
    """Warm the executor's local cache with the base image."""
    cwd = os.getcwd()
    args = [
        "docker", "run",
        "-v", _gcloud_volume(),
        "-v", cwd + ":/workspace",
        WARMER_IMAGE,
        "-c", CACHE_DIR,
        "-i", BASE_IMAGE_TO_CACHE,
    ]
    try:
        run_command(args)
    except (OSError, subprocess.CalledProcessError) as err:
        raise IntegrationError(f"Failed to warm kaniko cache: {err}") from err


class DockerFileBuilder:
    """Builds test Dockerfiles with docker and the executor, tracking which were built."""

    def __init__(self, dockerfiles: Sequence[str]):
        self.files_built: dict[str, bool] = {name: False for name in dockerfiles}
        self.dockerfiles_to_ignore: set[str] = {"Dockerfile_test_user_run"}
        self.test_cache_dockerfiles: set[str] = {
            "Dockerfile_test_cache",
            "Dockerfile_test_cache_install",
        }
        self.context_dir = os.getcwd()
        self.timings: dict[str, float] = {}

    @contextmanager
    def _timed(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name] = time.perf_counter() - start

    def build_image(
        self, image_repo: str, gcs_bucket: str, dockerfiles_path: str, dockerfile: str
    ) -> None:
        """Build dockerfile with docker and with the executor, tagged under image_repo."""
        print(f"Building images for Dockerfile {dockerfile}")

        build_args: list[str] = []
        for arg in ARGS_MAP.get(dockerfile, []):
            build_args += ["--build-arg", arg]

        docker_image = get_docker_image(image_repo, dockerfile)
        docker_cmd = [
            "docker", "build",
            "-t", docker_image,
            "-f", os.path.join(dockerfiles_path, dockerfile),
            ".",
            *build_args,
            *ADDITIONAL_DOCKER_FLAGS_MAP.get(dockerfile, []),
        ]
        with self._timed(dockerfile + "_docker"):
            self._run(docker_cmd, docker_image, "docker")

        if dockerfile in BUCKET_CONTEXT_TESTS:
            context_flag, context_path = "-b", gcs_bucket
        else:
            context_flag, context_path = "-c", BUILD_CONTEXT_PATH
        reproducible = ["--reproducible"] if dockerfile in REPRODUCIBLE_TESTS else []

        benchmark_env = "BENCHMARK_FILE=false"
        benchmark_dir = tempfile.mkdtemp()
        upload = None
        if _benchmarking():
            benchmark_env = "BENCHMARK_FILE=/kaniko/benchmarks/" + dockerfile
            benchmark_file = os.path.join(benchmark_dir, dockerfile)
            file_name = f"run_{datetime.now():%Y-%m-%d-%H:%M}_{dockerfile}"
            upload = (benchmark_file, os.path.join("benchmarks", file_name))

        kaniko_image = get_kaniko_image(image_repo, dockerfile)
        kaniko_cmd = [
            "docker", "run",
            "-v", _gcloud_volume(),
            "-v", benchmark_dir + ":/kaniko/benchmarks",
            "-v", self.context_dir + ":/workspace",
            "-e", benchmark_env,
            EXECUTOR_IMAGE,
            "-f", os.path.join(BUILD_CONTEXT_PATH, dockerfiles_path, dockerfile),
            "-d", kaniko_image,
            *reproducible,
            context_flag, context_path,
            *build_args,
            *ADDITIONAL_KANIKO_FLAGS_MAP.get(dockerfile, []),
        ]
        try:
            with self._timed(dockerfile + "_kaniko"):
                self._run(kaniko_cmd, docker_image, "kaniko")
        finally:
            if upload is not None:
                try:
                    upload_file_to_bucket(gcs_bucket, *upload)
                except IntegrationError as err:
                    logger.warning("%s", err)

        self.files_built[dockerfile] = True

    @staticmethod
    def _run(args: list[str], image: str, tool: str) -> None:
        try:
            run_command(args)
        except (OSError, subprocess.CalledProcessError) as err:
            output = (getattr(err, "output", b"") or b"").decode(errors="replace")
            raise IntegrationError(
                f'Failed to build image {image} with {tool} command "{args}": {err} {output}'
            ) from err

    def build_cached_images(
        self, image_repo: str, cache_repo: str, dockerfiles_path: str, version: int
    ) -> None:
        """Build the cache test images with caching on; version counts the builds."""
        for dockerfile in sorted(self.test_cache_dockerfiles):
            benchmark_env = "BENCHMARK_FILE=false"
            if _benchmarking():
                os.makedirs("benchmarks", 0o755, exist_ok=True)
                benchmark_env = "BENCHMARK_FILE=/workspace/benchmarks/" + dockerfile
            kaniko_image = get_versioned_kaniko_image(image_repo, dockerfile, version)
            kaniko_cmd = [
                "docker", "run",
                "-v", _gcloud_volume(),
                "-v", self.context_dir + ":/workspace",
                "-e", benchmark_env,
                EXECUTOR_IMAGE,
                "-f", os.path.join(BUILD_CONTEXT_PATH, dockerfiles_path, dockerfile),
                "-d", kaniko_image,
                "-c", BUILD_CONTEXT_PATH,
                "--cache=true",
                "--cache-repo", cache_repo,
                "--cache-dir", CACHE_DIR,
            ]
            try:
                with self._timed(f"{dockerfile}_kaniko_cached_{version}"):
                    run_command(kaniko_cmd)
            except (OSError, subprocess.CalledProcessError) as err:
                raise IntegrationError(
                    f'Failed to build cached image {kaniko_image} with kaniko command '
                    f'"{kaniko_cmd}": {err}'
                ) from err