"""Small helpers shared across larkify."""

from __future__ import annotations

from .redact import redact

__all__ = ["redact"]
