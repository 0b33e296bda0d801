"""
Document signing and image editing package.

This package provides tools for stamping signatures onto document images,
adjusting images the way the in-browser editor does (rotation, brightness,
contrast, saturation), and converting images between output formats.
"""

__version__ = "0.1.0"
