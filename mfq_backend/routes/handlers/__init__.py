"""
Route handlers.
"""
from .queue import register_queue_routes

__all__ = ["register_queue_routes"]
