"""
Browse collaborators: return the direct children of a folder identifier.
"""
from .base import BrowseClient
from .filesystem import LocalBrowseClient
from .http import HttpBrowseClient

__all__ = ["BrowseClient", "LocalBrowseClient", "HttpBrowseClient"]
