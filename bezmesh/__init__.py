"""Bezier height-surface evaluation and tessellation.

A Python project that evaluates bicubic tensor-product Bezier height surfaces
and converts them into interleaved vertex buffers ready for a renderer.
"""

from __future__ import annotations

__version__ = "0.1.0"
