"""Aggregate exports for model convenience imports.

Prefer importing specific models from their modules.
"""

from .enums import ItemResult, ReportStatus  # noqa: F401
from .profile import EntitlementsPublic, Profile, ProfilePublic  # noqa: F401
from .report import (  # noqa: F401
    ItemPublic,
    ItemUpdate,
    PhotoPublic,
    Report,
    ReportDetail,
    ReportItem,
    ReportItemPhoto,
    ReportSummary,
    ReportUpdate,
)
