"""
Application wiring for the session core.
"""

from .container import SessionContainer, build_session_core, configure_logging

__all__ = ["SessionContainer", "build_session_core", "configure_logging"]
