"""
toolrelay api module.

This module exposes the orchestrator over HTTP.
"""

from toolrelay.api.http import HttpServer, create_app

__all__ = ["HttpServer", "create_app"]
