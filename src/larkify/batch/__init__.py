"""Batch planning and upload coordination."""

from __future__ import annotations

from .coordinator import IdMapping, UploadCoordinator
from .planner import BatchPlanner

__all__ = ["BatchPlanner", "IdMapping", "UploadCoordinator"]
