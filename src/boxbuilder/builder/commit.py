import logging
from typing import Optional

from .interrupt import CancellationToken, InterruptWatcher
from ..config import cache_disabled
from ..datacls import BuildState
from ..exceptions import BoxBuilderError, BuildInterruptedError, RuntimeCommunicationError
from ..protocols import StepHook
from ..runtime import Runtime

logger = logging.getLogger(__name__)


class CommitProtocol:
    """
    Turns one build step into one committed image.

    Every call creates an ephemeral container from the live config, lets the
    step hook act on it, commits it with the cache key as the image comment
    and removes it again. The container is removed on every path: cleanly
    after a successful commit, forcibly on failure, and by the interrupt
    watcher when the build is cancelled mid-call.
    """

    def __init__(self, runtime: Runtime, token: Optional[CancellationToken] = None):
        self.runtime = runtime
        self.token = token or CancellationToken()

    def commit(self, state: BuildState, cache_key: str, hook: Optional[StepHook] = None) -> str:
        """
        Apply ``hook`` (if any) in a fresh container and commit the result.

        ``state`` is pointed at the new image on success and left untouched on
        failure.
        """
        disabled = cache_disabled()
        key = "" if disabled else cache_key

        self.token.raise_if_cancelled()
        container_id = self.runtime.create_container(state.config)
        logger.debug(f"[Commit] Created intermediate container '{container_id[:12]}' from '{state.image}'")

        removed = False
        succeeded = False
        try:
            with InterruptWatcher(self.runtime, container_id, self.token):
                if hook is not None:
                    refined = hook(container_id)
                    if refined and not disabled:
                        key = refined
                self.token.raise_if_cancelled()
                image_id = self.runtime.commit_container(container_id, state.commit_config(), key)
                removed = self._remove(container_id)
            succeeded = True
        except BuildInterruptedError:
            raise
        except BoxBuilderError as e:
            if self.token.cancelled:
                raise BuildInterruptedError(
                    f"Build {self.token.reason} while working in container '{container_id[:12]}'"
                ) from e
            raise
        finally:
            if not removed:
                self._discard(container_id, strict=succeeded)

        state.set_image(image_id)
        logger.debug(f"[Commit] Committed '{image_id}' with key '{key}'")
        return image_id

    def _remove(self, container_id: str) -> bool:
        """Clean removal; on failure the forced path takes over."""
        try:
            self.runtime.remove_container(container_id)
        except RuntimeCommunicationError as e:
            logger.warning(f"[Commit] Could not remove intermediate container '{container_id[:12]}', forcing: {e}")
            return False
        return True

    def _discard(self, container_id: str, strict: bool):
        """
        Forced removal. Tolerates containers that are already gone. Unless
        ``strict`` (nothing else failed), errors are only logged so they never
        mask the original failure.
        """
        try:
            self.runtime.remove_container(container_id, force=True)
        except RuntimeCommunicationError as e:
            if strict:
                raise RuntimeCommunicationError(
                    "remove container", container_id, f"could not remove intermediate container: {e.reason}"
                ) from e
            logger.error(f"[Commit] Could not remove intermediate container '{container_id[:12]}': {e}")
