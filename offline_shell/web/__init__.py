"""
Host Adapter Layer.

This package exposes the engine as an HTTP reverse proxy in front of the
application origin.
"""

from .proxy import ShellProxy, build_proxy

__all__ = ["ShellProxy", "build_proxy"]
