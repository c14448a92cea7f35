"""Markdown review package."""

from .config import AnalysisConfig, PromptConfig, ReviewConfig

__all__ = ["AnalysisConfig", "PromptConfig", "ReviewConfig"]
