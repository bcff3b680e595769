"""Expose the application factory at package level.

Provide convenient access to :func:`tokenguard.factory.create_app` so callers
can ``from tokenguard import create_app`` without traversing the package.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
