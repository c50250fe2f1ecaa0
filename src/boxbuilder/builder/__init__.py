"""
Box Builder Builder Module

- Builder: drives a Boxfile through the step dispatcher
- StepDispatcher: step name -> handler, mutating Build State
- CommitProtocol: ephemeral container -> hook -> committed image
- RunHook / CopyHook: effects applied inside the ephemeral container
- CancellationToken / InterruptWatcher: cancellation of in-flight commits

Usage:
    from boxbuilder.builder import Builder
    from boxbuilder.config import Boxfile
    from boxbuilder.runtime import DockerRuntime

    builder = Builder(Boxfile("Boxfile.yml"), DockerRuntime())
    image_id = builder.run()
"""

from .build import Builder, read_image_file
from .commit import CommitProtocol
from .dispatcher import StepDispatcher
from .hooks import RunHook, CopyHook, stdout_sink
from .interrupt import CancellationToken, InterruptWatcher, cancel_on_signals

__all__ = [
    'Builder',
    'read_image_file',
    'CommitProtocol',
    'StepDispatcher',
    'RunHook',
    'CopyHook',
    'stdout_sink',
    'CancellationToken',
    'InterruptWatcher',
    'cancel_on_signals',
]
