import json
import logging
import posixpath
from pathlib import Path
from typing import Dict, List, Optional, Union

from .commit import CommitProtocol
from .hooks import CopyHook, OutputSink, RunHook
from .interrupt import CancellationToken
from .. import constants
from ..cache import CacheLookup, ContentHasher
from ..datacls import BuildState, ImageRecord, Invocation, MapArg, StepArg
from ..exceptions import (
    MissingBaseImageError,
    RuntimeCommunicationError,
    ScopedStepError,
    StepArgumentError,
    UsageError,
)
from ..io.archive import ArchivePackager
from ..protocols import Block, StepHook
from ..registry import StepRegistry, step
from ..runtime import Runtime

logger = logging.getLogger(__name__)


def strings(args: List[StepArg]) -> List[str]:
    """Flatten positional arguments into plain strings."""
    words: List[str] = []
    for arg in args:
        words.extend(arg.strings())
    return words


def render(invocation: Invocation) -> str:
    text = " ".join(strings(invocation.args))
    return f"{invocation.name} {text}".rstrip()


class StepDispatcher:
    """
    Maps step invocations onto Build State and the commit protocol.

    Every committing step first consults the cache with its key; on a hit the
    cached image is adopted and the step's hook never runs.
    """

    def __init__(
        self,
        runtime: Runtime,
        token: Optional[CancellationToken] = None,
        context: Union[str, Path] = ".",
        omit: Optional[List[str]] = None,
        output: Optional[OutputSink] = None,
    ):
        self.runtime = runtime
        self.token = token or CancellationToken()
        self.committer = CommitProtocol(runtime, self.token)
        self.lookup = CacheLookup(runtime)
        self.hasher = ContentHasher()
        self.packager = ArchivePackager(context)
        self.output = output
        self.registry = StepRegistry(omit=omit or ()).discover(self)

    # --- Evaluation ---
    def evaluate(self, state: BuildState, invocations: List[Invocation]):
        for invocation in invocations:
            self.token.raise_if_cancelled()
            self.dispatch(state, invocation)

    def dispatch(self, state: BuildState, invocation: Invocation):
        handler = self.registry.resolve(invocation.name)
        block: Optional[Block] = None
        if invocation.block is not None:
            nested = invocation.block

            def block():
                self.evaluate(state, nested)

        logger.info(f"--- {render(invocation)}")
        try:
            handler(state, invocation.args, block)
        except UsageError as e:
            if invocation.location and invocation.location not in str(e):
                raise type(e)(f"{invocation}: {e}") from e
            raise

    # --- Steps ---
    @step("from")
    def from_(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._no_block("from", block)
        ref = self._single("from", args)
        state.reset(ref, self._ensure_image(ref))
        self._commit(state, f"from {ref}")

    @step("run")
    def run(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._require_image(state, "run")
        self._no_block("run", block)
        command = " ".join(strings(args))
        if not command:
            raise StepArgumentError("'run' needs a command")
        key = f"run {command}"
        if self.lookup.consult(state, key):
            return
        with state.transient(cmd=[*constants.RUN_SHELL, command]):
            self.committer.commit(state, key, RunHook(self.runtime, self.output))

    @step("env")
    def env(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._require_image(state, "env")
        self._no_block("env", block)
        pairs = self._env_pairs(args)
        if not pairs:
            raise StepArgumentError("'env' needs at least one KEY: value pair")
        state.config.env.update(pairs)
        self._commit(state, f"env {json.dumps(pairs)}")

    @step("cmd")
    def cmd(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._require_image(state, "cmd")
        self._no_block("cmd", block)
        words = strings(args)
        state.set_canonical("cmd", words)
        self._commit(state, f"cmd {json.dumps(words)}")

    @step("entrypoint")
    def entrypoint(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._require_image(state, "entrypoint")
        self._no_block("entrypoint", block)
        words = strings(args)
        state.set_canonical("entrypoint", words)
        self._commit(state, f"entrypoint {json.dumps(words)}")

    @step("user")
    def user(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._scoped(state, "user", args, block)

    @step("workdir")
    def workdir(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._scoped(state, "workdir", args, block)

    @step("copy")
    def copy(self, state: BuildState, args: List[StepArg], block: Optional[Block] = None):
        self._require_image(state, "copy")
        self._no_block("copy", block)
        words = strings(args)
        if len(words) != 2:
            raise StepArgumentError(f"'copy' takes a source and a target, got {len(words)} arguments")
        source, target = words
        target = self._container_path(state, target)

        # package and hash before touching the runtime; a failure here commits nothing
        with self.packager.packed(source, target) as archive:
            key = self.hasher.copy_key(self.packager.resolve(source))
            if self.lookup.consult(state, key):
                return
            self.committer.commit(state, key, CopyHook(self.runtime, archive, key))

    # --- Helpers ---
    def _commit(self, state: BuildState, key: str, hook: Optional[StepHook] = None):
        if self.lookup.consult(state, key):
            return
        self.committer.commit(state, key, hook)

    def _scoped(self, state: BuildState, name: str, args: List[StepArg], block: Optional[Block]):
        if block is None:
            raise ScopedStepError(f"'{name}' needs a nested block of steps")
        words = strings(args)
        if len(words) != 1 or not words[0]:
            raise ScopedStepError(f"'{name}' takes exactly one value, got {len(words)}")
        with state.scoped(constants.SCOPED_FIELDS[name], words[0]):
            block()

    def _ensure_image(self, ref: str) -> ImageRecord:
        if not self.runtime.has_image(ref):
            logger.info(f"Pulling '{ref}'...")
            for event in self.runtime.pull_image(ref):
                if event.get("error"):
                    raise RuntimeCommunicationError("pull image", ref, event["error"])
                progress = " ".join(
                    str(event[field]) for field in ("id", "status", "progress") if event.get(field)
                )
                if progress:
                    logger.debug(f"[Pull] {progress}")
        return self.runtime.inspect_image(ref)

    @staticmethod
    def _require_image(state: BuildState, name: str):
        if not state.image:
            raise MissingBaseImageError(f"`from` must be the first step, '{name}' has no image to work on")

    @staticmethod
    def _no_block(name: str, block: Optional[Block]):
        if block is not None:
            raise StepArgumentError(f"'{name}' does not take nested steps")

    @staticmethod
    def _single(name: str, args: List[StepArg]) -> str:
        words = strings(args)
        if len(words) != 1 or not words[0]:
            raise StepArgumentError(f"'{name}' takes exactly one argument, got {len(words)}")
        return words[0]

    @staticmethod
    def _env_pairs(args: List[StepArg]) -> Dict[str, str]:
        pairs: Dict[str, str] = {}
        for arg in args:
            if isinstance(arg, MapArg):
                pairs.update(arg.mapping)
                continue
            for word in arg.strings():
                key, sep, value = word.partition("=")
                if not sep or not key:
                    raise StepArgumentError(f"'env' expects KEY=VALUE or a mapping, got {word!r}")
                pairs[key] = value
        return pairs

    @staticmethod
    def _container_path(state: BuildState, target: str) -> str:
        if posixpath.isabs(target):
            return target
        return posixpath.join(state.config.working_dir or "/", target)
