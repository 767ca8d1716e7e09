"""
toolrelay backends module.

This module provides clients for language model backends.
"""

from toolrelay.backends.base import ModelBackend, ModelBackendError, ModelReply, OllamaBackend

__all__ = ["ModelBackend", "ModelBackendError", "ModelReply", "OllamaBackend"]
