"""Utility functions for citerag."""

from citerag.utils.binary import (
    detect_binary,
    is_binary_content,
    is_binary_extension,
    read_text_file,
)

__all__ = ["detect_binary", "is_binary_content", "is_binary_extension", "read_text_file"]
