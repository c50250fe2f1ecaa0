"""
Box Builder Runtime Module

- Runtime: Abstract container runtime interface used by the build engine
- DockerRuntime: Docker Engine implementation (Docker SDK low-level API)
"""

from .base import Runtime
from .engine import DockerRuntime

__all__ = [
    'Runtime',
    'DockerRuntime',
]
