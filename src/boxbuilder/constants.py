# --- Log and Debug ---
# Short aliases for module names to keep CLI/env concise
LOG_ALIAS_MAP = {
    "commit": "boxbuilder.builder.commit",
    "cmt": "boxbuilder.builder.commit",
    "dispatch": "boxbuilder.builder.dispatcher",
    "dsp": "boxbuilder.builder.dispatcher",
    "hooks": "boxbuilder.builder.hooks",
    "build": "boxbuilder.builder.build",
    "bld": "boxbuilder.builder.build",
    "irq": "boxbuilder.builder.interrupt",
    "cache": "boxbuilder.cache",
    "cc": "boxbuilder.cache",
    "hash": "boxbuilder.cache.hasher",
    "io": "boxbuilder.io",
    "tar": "boxbuilder.io.archive",
    "rt": "boxbuilder.runtime",
    "engine": "boxbuilder.runtime.engine",
    "conf": "boxbuilder.config",
    "rty": "boxbuilder.registry",
}

# Top-level modules within boxbuilder for auto-prefixing
KNOWN_TOP_MODULES = {
    "builder",
    "cache",
    "io",
    "runtime",
    "datacls",
    "utils",
    "config",
    "registry",
    "exceptions",
}

LOG_LEVELS_ENV = "BOXB_LOG_LEVELS"


# --- Cache ---
# Any non-empty value disables cache lookups and cache-key propagation
NO_CACHE_ENV = "NO_CACHE"
COPY_KEY_PREFIX = "box:copy"
HASH_CHUNK_SIZE = 64 * 1024
# operations whose keys end up in image comments
CACHE_KEY_OPS = ("from", "run", "env", "cmd", "entrypoint", COPY_KEY_PREFIX)


# --- Steps ---
RUN_SHELL = ["/bin/sh", "-c"]
BLOCK_KEY = "steps"
SCOPED_FIELDS = {
    "user": "user",
    "workdir": "working_dir",
}


# --- Filenames and Paths ---
DEFAULT_BOXFILE = "Boxfile.yml"
ARCHIVE_PREFIX = "box-copy."
ARCHIVE_ROOT = "/"


# --- Output ---
OUTPUT_BEGIN = "------ BEGIN OUTPUT ------"
OUTPUT_END = "------ END OUTPUT ------"
