from typing import Optional


class BoxBuilderError(Exception):
    """Base exception for all application-specific errors."""

    pass


# --- 1. Errors related to loading and parsing the Boxfile ---
class ConfigurationError(BoxBuilderError):
    """Base class for errors encountered while finding, reading, or parsing a Boxfile."""

    pass


class BoxfileMissingError(ConfigurationError):
    """Raised when the Boxfile cannot be found."""

    pass


class BoxfileParsingError(ConfigurationError):
    """Raised when a Boxfile is syntactically incorrect YAML."""

    pass


class BoxfileValidationError(ConfigurationError):
    """Raised when the Boxfile fails structural validation (e.g., Pydantic)."""

    pass


# --- 2. Errors caused by invoking steps the wrong way ---
class UsageError(BoxBuilderError):
    """Base class for misuse of the step language. Raised before any runtime call."""

    pass


class UnknownStepError(UsageError):
    """Raised when a step name is not registered (or has been omitted)."""

    pass


class StepArgumentError(UsageError):
    """Raised when a step receives the wrong number or kind of arguments."""

    pass


class MissingBaseImageError(UsageError):
    """Raised when a step needs an image but no `from` step has run yet."""

    pass


class ScopedStepError(UsageError):
    """Raised for a malformed `user`/`workdir` invocation, e.g. without a nested block."""

    pass


# --- 3. Errors talking to the container runtime ---
class RuntimeCommunicationError(BoxBuilderError):
    """Raised when a call to the container runtime itself fails."""

    def __init__(self, operation: str, target: Optional[str] = None, reason: object = None):
        self.operation = operation
        self.target = target
        self.reason = reason
        where = f" for {target!r}" if target else ""
        super().__init__(f"{operation} failed{where}: {reason}")


# --- 4. Errors that occur while executing the build ---
class BuildError(BoxBuilderError):
    """Base class for errors that abort a build while steps are executing."""

    pass


class NonZeroExitError(BuildError):
    """Raised when a `run` step's process exits with a non-zero status."""

    def __init__(self, container_id: str, exit_code: int):
        self.container_id = container_id
        self.exit_code = exit_code
        super().__init__(f"Command exited with status {exit_code} for container {container_id!r}")


class BuildInterruptedError(BuildError):
    """Raised when the build is cancelled by an interrupt or termination signal."""

    pass


# --- 5. Errors packaging or hashing files ---
class ArchiveError(BoxBuilderError):
    """Raised for unreadable sources or truncated archives. The current copy step is aborted."""

    pass
