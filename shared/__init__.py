"""
PHYSIOCOACH Shared Module

Common utilities used across services.
"""

from .utils import setup_logger, get_now, get_now_iso

__all__ = [
    'setup_logger',
    'get_now',
    'get_now_iso',
]
