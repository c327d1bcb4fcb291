"""
offline-shell: an offline-capable request interception layer for web apps.
"""

__version__ = "1.0.0"
