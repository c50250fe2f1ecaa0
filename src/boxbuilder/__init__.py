"""
Box Builder

An image-build engine that runs a sequence of declarative steps against a
container runtime, committing one image per step and skipping steps whose
result is already cached as a child image of the current one.

Main modules:
- builder: Build driver, step dispatcher, commit protocol and interrupts
- cache: Content hashing and cache lookup
- config: Boxfile loading and process configuration
- datacls: Type-safe data classes and models
- io: Archive packaging for copy steps
- runtime: Container runtime abstraction and the Docker implementation
- registry: Step registry
- utils: Utility functions

Quick start example:
```python
from boxbuilder import Boxfile, Builder, DockerRuntime

builder = Builder(Boxfile("Boxfile.yml"), DockerRuntime())
image_id = builder.run()
```
"""

__version__ = "0.3.0"

from .protocols import StepHook, StepHandler, Block
from .registry import StepRegistry, step
from .config import Boxfile, cache_disabled
from .builder import Builder, CancellationToken, CommitProtocol, StepDispatcher
from .runtime import Runtime, DockerRuntime
from .datacls import BuildState, Invocation
from .exceptions import (
    BoxBuilderError,
    ConfigurationError,
    UsageError,
    RuntimeCommunicationError,
    BuildError,
    ArchiveError,
)

__all__ = [
    # Version
    '__version__',
    # Protocols
    'StepHook',
    'StepHandler',
    'Block',
    # Registry
    'StepRegistry',
    'step',
    # Config
    'Boxfile',
    'cache_disabled',
    # Builder
    'Builder',
    'CancellationToken',
    'CommitProtocol',
    'StepDispatcher',
    # Runtime
    'Runtime',
    'DockerRuntime',
    # Data classes
    'BuildState',
    'Invocation',
    # Exceptions
    'BoxBuilderError',
    'ConfigurationError',
    'UsageError',
    'RuntimeCommunicationError',
    'BuildError',
    'ArchiveError',
]
