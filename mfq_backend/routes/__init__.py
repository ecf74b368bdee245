"""
Route system for the media folder queue.
Importing this package is side-effect free; route registration is explicit.
"""
from .registry import APP_KEY_ENGINE, build_route_table, get_app_engine, register_routes

__all__ = ["register_routes", "build_route_table", "get_app_engine", "APP_KEY_ENGINE"]
