import logging
from typing import Iterable, Optional

from .dispatcher import StepDispatcher
from .hooks import OutputSink
from .interrupt import CancellationToken
from ..config import Boxfile
from ..datacls import BuildState, ImageConfig
from ..exceptions import MissingBaseImageError, RuntimeCommunicationError
from ..io.archive import read_member
from ..runtime import Runtime

logger = logging.getLogger(__name__)


class Builder:

    def __init__(
        self,
        boxfile: Boxfile,
        runtime: Runtime,
        token: Optional[CancellationToken] = None,
        omit: Iterable[str] = (),
        tag: Optional[str] = None,
        output: Optional[OutputSink] = None,
    ):
        self.boxfile = boxfile
        self.runtime = runtime
        self.token = token or CancellationToken()
        self.tag = tag or boxfile.tag
        self.state = BuildState()
        self.dispatcher = StepDispatcher(
            runtime,
            token=self.token,
            context=boxfile.context,
            omit=list(omit),
            output=output,
        )
        logger.debug(f"Builder initialized for '{boxfile.path}'. Context: '{boxfile.context}'")

    def run(self) -> str:
        """Evaluate every step of the Boxfile and return the final image id."""
        logger.info(f"[Builder] Starting build of '{self.boxfile.path}'...")
        self.dispatcher.evaluate(self.state, self.boxfile.invocations)

        image_id = self.state.image
        if not image_id:
            raise MissingBaseImageError("Boxfile produced no image, it needs at least a `from` step")

        if self.tag:
            self.runtime.tag_image(image_id, self.tag)
            logger.info(f"Tagged: {self.tag}")

        logger.info(f"[Builder] Build finished: {image_id}")
        return image_id

    def read(self, path: str) -> bytes:
        """Read ``path`` from the image the build has produced so far."""
        if not self.state.image:
            raise MissingBaseImageError(f"no image to read '{path}' from")
        return read_image_file(self.runtime, self.state.image, path)


def read_image_file(runtime: Runtime, image: str, path: str) -> bytes:
    """
    Return the bytes of ``path`` inside ``image``.

    Works through a throwaway container that is removed on every exit path.
    """
    container_id = runtime.create_container(ImageConfig(image=image))
    logger.debug(f"[Read] Created container '{container_id[:12]}' to read '{path}' from '{image}'")
    try:
        return read_member(runtime.copy_from_container(container_id, path), path)
    finally:
        try:
            runtime.remove_container(container_id, force=True)
        except RuntimeCommunicationError as e:
            logger.error(f"[Read] Could not remove container '{container_id[:12]}': {e}")
