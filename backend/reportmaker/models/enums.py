"""Enumerations used by the report models."""
from __future__ import annotations

from enum import Enum


class ReportStatus(str, Enum):
    draft = "draft"
    final = "final"


class ItemResult(str, Enum):
    pass_ = "pass"
    fail = "fail"
    na = "na"

    @property
    def label(self) -> str:
        """Display form used on exports: PASS, FAIL or N/A."""
        return "N/A" if self is ItemResult.na else self.value.upper()


__all__ = ["ReportStatus", "ItemResult"]
