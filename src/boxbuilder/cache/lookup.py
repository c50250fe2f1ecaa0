import logging
from typing import Optional

from .. import constants
from ..config import cache_disabled
from ..datacls import BuildState
from ..runtime import Runtime

logger = logging.getLogger(__name__)


def is_cache_key(comment: Optional[str]) -> bool:
    """Whether an image comment was written by a build step."""
    if not comment:
        return False
    op = comment.split(" ", 1)[0]
    return op in constants.CACHE_KEY_OPS and " " in comment


class CacheLookup:
    """
    Finds a previously committed child of the current image carrying the same
    cache key in its comment.

    Only children of the current image are considered. When several children
    share the key the first one in the runtime's listing order is taken; that
    order is not stable, so callers must not rely on which one wins.

    Keys carry only the step and its arguments. Active user/workdir scopes are
    not part of them, so a `run` inside a scope can hit an unscoped `run` with
    the same command under the same parent.
    """

    def __init__(self, runtime: Runtime):
        self.runtime = runtime

    def consult(self, state: BuildState, key: str) -> bool:
        """
        On a hit the candidate's configuration is adopted into ``state`` and
        True is returned so the caller can skip the step. Runtime failures are
        raised as RuntimeCommunicationError.
        """
        if cache_disabled():
            logger.debug(f"[Cache] Disabled, skipping lookup for '{key}'")
            return False
        parent = state.image
        if not parent:
            return False

        for summary in self.runtime.list_images():
            if summary.parent_id != parent:
                continue
            record = self.runtime.inspect_image(summary.id)
            if record.comment == key:
                logger.info(f"+++ Cache hit: using '{record.id}' for '{key}'")
                state.adopt(record)
                return True

        logger.debug(f"[Cache] Miss for '{key}' under '{parent}'")
        return False
