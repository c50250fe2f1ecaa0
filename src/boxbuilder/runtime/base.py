"""
Box Builder Runtime Abstraction

The narrow set of container-runtime operations the build engine needs. The
engine only ever talks to the runtime through this interface; ``DockerRuntime``
is the production implementation and tests substitute an in-memory one.

Implementations raise ``RuntimeCommunicationError`` for every failed call.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List

from ..datacls import ImageConfig, ImageRecord, ImageSummary


class Runtime(ABC):
    """
    Abstract class describing a container runtime endpoint.
    """

    # --- Containers ---
    @abstractmethod
    def create_container(self, config: ImageConfig) -> str:
        """Create (but do not start) a container, returning its id."""
        pass

    @abstractmethod
    def start_container(self, container_id: str):
        pass

    @abstractmethod
    def attach_container(self, container_id: str) -> Iterator[bytes]:
        """Attach to stdout/stderr; the iterator ends when the container stops."""
        pass

    @abstractmethod
    def wait_container(self, container_id: str) -> int:
        """Block until the container stops and return its exit code."""
        pass

    @abstractmethod
    def remove_container(self, container_id: str, force: bool = False) -> bool:
        """
        Remove a container.

        Returns:
            False if the container was already gone, True otherwise.
        """
        pass

    @abstractmethod
    def commit_container(self, container_id: str, config: ImageConfig, comment: str) -> str:
        """Snapshot a container into a new image and return the image id."""
        pass

    @abstractmethod
    def copy_from_container(self, container_id: str, path: str) -> Iterator[bytes]:
        """Stream a tar archive of ``path`` out of the container."""
        pass

    @abstractmethod
    def copy_to_container(self, container_id: str, path: str, archive: Path):
        """Extract the tar archive at ``archive`` into the container under ``path``."""
        pass

    # --- Images ---
    @abstractmethod
    def list_images(self) -> List[ImageSummary]:
        pass

    @abstractmethod
    def inspect_image(self, image_id: str) -> ImageRecord:
        pass

    @abstractmethod
    def has_image(self, ref: str) -> bool:
        pass

    @abstractmethod
    def pull_image(self, ref: str) -> Iterator[Dict[str, Any]]:
        """Pull ``ref``, yielding the runtime's progress messages."""
        pass

    @abstractmethod
    def tag_image(self, image_id: str, ref: str):
        pass

    def close(self):
        pass
