"""
Tracklog Console - JSON API over the tracking engine.

This console provides:
1. Version lifecycle endpoints (create, activate, deactivate, delete)
2. Filtered reports with positional entry deletion
3. Script, execution and dump-file exports
"""

from .app import create_app
from .routes import router

__all__ = ["create_app", "router"]
