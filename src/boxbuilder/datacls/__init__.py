from .args import StrArg, ListArg, MapArg, StepArg, Invocation, to_arg, stringify
from .images import ImageConfig, ImageSummary, ImageRecord, parse_env
from .state import BuildState

__all__ = [
    # Arguments
    'StrArg',
    'ListArg',
    'MapArg',
    'StepArg',
    'Invocation',
    'to_arg',
    'stringify',
    # Images
    'ImageConfig',
    'ImageSummary',
    'ImageRecord',
    'parse_env',
    # State
    'BuildState',
]
