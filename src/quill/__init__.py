"""Quill Assist: AI-assisted editing for block-structured posts."""

__version__ = "0.1.0"
