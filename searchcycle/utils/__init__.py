# searchcycle Utilities Package
"""
Shared utility functions and helpers for searchcycle.
"""

from .helpers import deep_copy, detect_locale_tags, load_config

__all__ = ["deep_copy", "detect_locale_tags", "load_config"]
