"""
Note generator implementations.
"""

from .markdown import MarkdownNoteGenerator

__all__ = ["MarkdownNoteGenerator"]
