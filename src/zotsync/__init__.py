"""
Zotero → Markdown vault sync engine.

Keeps a folder of generated notes in step with Zotero libraries by diffing
freshly generated notes against the status of the previous pass and
applying only the needed renames, updates, deletes and creates.
"""

__version__ = "0.1.0"
