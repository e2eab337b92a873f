"""
Refs Module - Resolution of references to external resources.
"""

from .resolver import Reference, ReferenceResolver

__all__ = [
    "Reference",
    "ReferenceResolver",
]
