"""Diagram rendering for mermaid code fences."""

from __future__ import annotations

from .mermaid import MermaidRenderer

__all__ = ["MermaidRenderer"]
