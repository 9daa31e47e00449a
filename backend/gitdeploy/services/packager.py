"""
Context Packager

Turns each function's build output directory into a tar build context and
derives the immutable image reference it will be pushed as.

Archive layout:
    com.openfaas.docker.config   build configuration (image ref, build args)
    context/...                  everything else from build/<function>
"""

import json
import logging
import os
import tarfile
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, Iterator, List, Optional

from gitdeploy.core.config import settings
from gitdeploy.core.constants import (
    CONTEXT_PREFIX,
    DEFAULT_IMAGE_TAG,
    DOCKER_CONFIG_FILE_NAME,
    SHORT_SHA_LENGTH,
    TRANSIENT_ARCHIVE_NAME,
)
from gitdeploy.core.exceptions import ConfigurationError, PackagingError
from gitdeploy.core.metrics import archive_size_bytes, functions_packaged_total
from gitdeploy.models.deploy import BuildContextArchive, PackagingResult
from gitdeploy.models.manifest import FunctionManifest, FunctionSpec
from gitdeploy.models.push_event import PushEvent
from gitdeploy.services.builder import function_build_dir

logger = logging.getLogger(__name__)


def make_build_args(input_args: Optional[Dict[str, str]], allowed: Iterable[str]) -> Dict[str, str]:
    """Keeps only the build arguments on the allow-list."""
    allowed_names = set(allowed)
    return {key: value for key, value in (input_args or {}).items() if key in allowed_names}


def format_short_sha(sha: str) -> str:
    return sha[:SHORT_SHA_LENGTH]


def format_image_tag(registry: str, image: str, sha: str, owner: str, repo: str, branch: str) -> str:
    """
    Builds the image reference for a function at one commit.

    ``registry`` ending in "/" selects the shared single-repository layout
    ``{registry}{owner}-{repo}-{image}``, otherwise images are nested as
    ``{registry}/{owner}/{repo}-{image}``.
    """
    image_name = image.rsplit("/", 1)[-1]
    if ":" not in image_name:
        image_name = f"{image_name}:{DEFAULT_IMAGE_TAG}"

    image_name = f"{image_name}-{branch}-{format_short_sha(sha)}"

    if registry.endswith("/"):
        return f"{registry[:-1]}/{owner}-{repo}-{image_name}"
    return f"{registry}/{owner}/{repo}-{image_name}"


def write_build_config(build_dir: str, image_ref: str, build_args: Dict[str, str]) -> str:
    config = {"ref": image_ref}
    if build_args:
        config["buildArgs"] = build_args

    path = os.path.join(build_dir, DOCKER_CONFIG_FILE_NAME)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as config_file:
        json.dump(config, config_file)
    return path


def walk_lexical(root: str) -> Iterator[str]:
    """Yields root, then every entry below it, depth first in lexical order."""
    yield root
    if os.path.isdir(root) and not os.path.islink(root):
        for name in sorted(os.listdir(root)):
            yield from walk_lexical(os.path.join(root, name))


def archive_name(path: str, build_dir: str) -> str:
    """
    Maps a host path under build_dir to its name inside the archive.

    The build root itself becomes ``context``.
    """
    relative = Path(path).relative_to(Path(build_dir)).parts
    if relative == (DOCKER_CONFIG_FILE_NAME,):
        return DOCKER_CONFIG_FILE_NAME
    return PurePosixPath(CONTEXT_PREFIX, *relative).as_posix()


def write_context_archive(build_dir: str, tar_path: str) -> List[str]:
    """Writes the archive and returns the entry names in the order written."""
    names: List[str] = []
    with tarfile.open(tar_path, "w") as tar:
        for path in walk_lexical(build_dir):
            if os.path.basename(path) == TRANSIENT_ARCHIVE_NAME:
                continue

            name = archive_name(path, build_dir)
            info = tar.gettarinfo(path, arcname=name)
            if info is None:
                logger.debug(f"Skipping unsupported file type {path}")
                continue

            if info.isreg():
                with open(path, "rb") as source:
                    tar.addfile(info, source)
            else:
                tar.addfile(info)
            names.append(name)
    return names


def package_function(
    event: PushEvent,
    name: str,
    spec: FunctionSpec,
    build_root: str,
    registry: str,
    branch: str,
    allowed_build_args: Iterable[str],
) -> BuildContextArchive:
    build_dir = function_build_dir(build_root, name)
    image_ref = format_image_tag(registry, spec.image, event.after_commit_id, event.owner, event.repo_name, branch)

    write_build_config(build_dir, image_ref, make_build_args(spec.build_args, allowed_build_args))

    tar_path = os.path.join(build_root, f"{name}.tar")
    logger.info(f"Creating tar for: {spec.handler} {name}")
    write_context_archive(build_dir, tar_path)
    archive_size_bytes.observe(os.path.getsize(tar_path))

    return BuildContextArchive(function_name=name, file_name=tar_path, image_name=image_ref)


def package_functions(
    event: PushEvent,
    manifest: FunctionManifest,
    build_root: str,
    registry: Optional[str] = None,
    branch: Optional[str] = None,
    allowed_build_args: Optional[Iterable[str]] = None,
) -> PackagingResult:
    """
    Packages every function in manifest order.

    A failure packaging one function is recorded against that function and
    the remaining functions are still packaged.
    """
    registry = settings.PUSH_REPOSITORY_URL if registry is None else registry
    if not registry:
        raise ConfigurationError("push_repository_url is not set")
    branch = branch or settings.BUILD_BRANCH
    allowed = list(settings.ALLOWED_BUILD_ARGS if allowed_build_args is None else allowed_build_args)

    logger.info(f"Tar up {build_root}")
    result = PackagingResult()
    for name, spec in manifest.functions.items():
        try:
            archive = package_function(event, name, spec, build_root, registry, branch, allowed)
        except (PackagingError, OSError, tarfile.TarError) as e:
            logger.error(f"Packaging failed for {name}: {e}")
            functions_packaged_total.labels(result="failure").inc()
            result.errors[name] = str(e)
            continue
        functions_packaged_total.labels(result="success").inc()
        result.archives.append(archive)
    return result
