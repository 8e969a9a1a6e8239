"""
ainotes: capture text fragments, auto-tag and embed them, and retrieve them
by keyword, tag, semantic similarity or natural-language question.
"""

__version__ = "0.1.0"
