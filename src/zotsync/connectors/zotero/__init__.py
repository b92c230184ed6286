"""
Zotero Web API connector.
"""

from .zotero_connector import ZoteroConnector

__all__ = ["ZoteroConnector"]
