"""
Box Builder IO Module

- iter_tree: deterministic walk of a host directory
- ArchivePackager: host files -> tar archive for the container root
- read_member: single file out of a runtime archive stream
"""

from .archive import iter_tree, ArchivePackager, read_member

__all__ = [
    'iter_tree',
    'ArchivePackager',
    'read_member',
]
