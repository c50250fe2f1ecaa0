"""
Docker Engine implementation of the runtime interface.

Uses the low-level API client of the Docker SDK so that commits can carry a
full container config and archives can be streamed in and out of containers.
"""

import functools
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import docker
import requests
from docker.errors import DockerException, NotFound

from .base import Runtime
from ..datacls import ImageConfig, ImageRecord, ImageSummary
from ..exceptions import RuntimeCommunicationError

logger = logging.getLogger(__name__)

RUNTIME_ERRORS = (DockerException, requests.exceptions.RequestException)


def wrap_runtime_error(operation: str):
    """
    Decorator to wrap SDK errors into RuntimeCommunicationError.

    The first positional argument after ``self`` names the container or image
    the call was about.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            target = str(args[0]) if args else None
            logger.debug(f"[Docker] {operation} {target or ''}".rstrip())
            try:
                return func(self, *args, **kwargs)
            except RUNTIME_ERRORS as e:
                raise RuntimeCommunicationError(operation, target, e) from e
        return wrapper
    return decorator


def guard_stream(operation: str, target: str, stream) -> Iterator[Any]:
    """Re-raise errors surfacing while a response stream is consumed."""
    try:
        for chunk in stream:
            yield chunk
    except RUNTIME_ERRORS as e:
        raise RuntimeCommunicationError(operation, target, e) from e


def split_ref(ref: str) -> Tuple[str, Optional[str]]:
    """Split ``repo[:tag]`` without confusing a registry port for a tag."""
    if "@" in ref:
        return ref, None
    repo, sep, tag = ref.rpartition(":")
    if not sep or "/" in tag:
        return ref, None
    return repo, tag


class DockerRuntime(Runtime):
    """
    Runtime backed by a Docker daemon, configured from the standard Docker
    environment (DOCKER_HOST, DOCKER_TLS_VERIFY, ...).
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        if client is None:
            try:
                client = docker.from_env()
            except DockerException as e:
                raise RuntimeCommunicationError("connect", None, e) from e
        self.client = client
        self.api = client.api

    # --- Containers ---
    @wrap_runtime_error("create container")
    def create_container(self, config: ImageConfig) -> str:
        resp = self.api.create_container_from_config(config.to_engine())
        for warning in resp.get("Warnings") or []:
            logger.warning(f"[Docker] {warning}")
        return resp["Id"]

    @wrap_runtime_error("start container")
    def start_container(self, container_id: str):
        self.api.start(container_id)

    @wrap_runtime_error("attach container")
    def attach_container(self, container_id: str) -> Iterator[bytes]:
        stream = self.api.attach(container_id, stdout=True, stderr=True, stream=True, logs=True)
        return guard_stream("attach container", container_id, stream)

    @wrap_runtime_error("wait container")
    def wait_container(self, container_id: str) -> int:
        resp = self.api.wait(container_id)
        error = resp.get("Error")
        if error and error.get("Message"):
            raise RuntimeCommunicationError("wait container", container_id, error["Message"])
        return int(resp.get("StatusCode", -1))

    @wrap_runtime_error("remove container")
    def remove_container(self, container_id: str, force: bool = False) -> bool:
        try:
            self.api.remove_container(container_id, force=force)
        except NotFound:
            logger.debug(f"[Docker] Container {container_id[:12]} already removed")
            return False
        return True

    @wrap_runtime_error("commit container")
    def commit_container(self, container_id: str, config: ImageConfig, comment: str) -> str:
        resp = self.api.commit(container_id, message=comment, conf=config.to_engine())
        return resp["Id"]

    @wrap_runtime_error("copy from container")
    def copy_from_container(self, container_id: str, path: str) -> Iterator[bytes]:
        stream, _ = self.api.get_archive(container_id, path)
        return guard_stream("copy from container", container_id, stream)

    @wrap_runtime_error("copy to container")
    def copy_to_container(self, container_id: str, path: str, archive: Path):
        with open(archive, "rb") as f:
            if not self.api.put_archive(container_id, path, f):
                raise RuntimeCommunicationError("copy to container", container_id, "archive was rejected")

    # --- Images ---
    @wrap_runtime_error("list images")
    def list_images(self) -> List[ImageSummary]:
        return [ImageSummary.model_validate(img) for img in self.api.images(all=True)]

    @wrap_runtime_error("inspect image")
    def inspect_image(self, image_id: str) -> ImageRecord:
        return ImageRecord.from_engine(self.api.inspect_image(image_id))

    def has_image(self, ref: str) -> bool:
        try:
            self.api.inspect_image(ref)
        except NotFound:
            return False
        except RUNTIME_ERRORS as e:
            raise RuntimeCommunicationError("inspect image", ref, e) from e
        return True

    @wrap_runtime_error("pull image")
    def pull_image(self, ref: str) -> Iterator[Dict[str, Any]]:
        repo, tag = split_ref(ref)
        stream = self.api.pull(repo, tag=tag or "latest", stream=True, decode=True)
        return guard_stream("pull image", ref, stream)

    @wrap_runtime_error("tag image")
    def tag_image(self, image_id: str, ref: str):
        repo, tag = split_ref(ref)
        if not self.api.tag(image_id, repo, tag=tag, force=True):
            raise RuntimeCommunicationError("tag image", image_id, f"could not tag as {ref!r}")

    def close(self):
        self.client.close()
