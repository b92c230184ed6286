"""
Source connectors for the sync engine.
"""

from .zotero import ZoteroConnector

__all__ = ["ZoteroConnector"]
