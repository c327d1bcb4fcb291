"""
Data Models Layer.

This package contains the Pydantic configuration model and the plain value
types (requests, captured responses, statistics) used throughout the application.
"""

from .config import ShellConfig
from .http import Category, CapturedResponse, RequestRecord
from .stats import EngineStats

__all__ = ["CapturedResponse", "Category", "EngineStats", "RequestRecord", "ShellConfig"]
