from datetime import date, datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field

from ..core.clock import utcnow
from .enums import ItemResult, ReportStatus


class ReportBase(SQLModel):
    report_id: Optional[str] = Field(default=None, max_length=120, description="User-supplied report label")
    title: Optional[str] = Field(default=None, max_length=255)
    inspector_name: Optional[str] = Field(default=None, max_length=255)
    inspection_date: Optional[date] = Field(default=None)
    details: Optional[str] = Field(default=None)


class Report(ReportBase, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    status: ReportStatus = Field(default=ReportStatus.draft, index=True)
    created_by: str = Field(foreign_key="profile.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ReportItem(SQLModel, table=True):
    __tablename__ = "report_item"
    # idx is the display order; unique per report so reordering has to go through a sentinel
    __table_args__ = (UniqueConstraint("report_id", "idx", name="uq_report_item_report_idx"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    report_id: UUID = Field(foreign_key="report.id", index=True)
    idx: int
    title: str = Field(default="", max_length=255)
    result: ItemResult = Field(default=ItemResult.na)
    notes: str = Field(default="")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ReportItemPhoto(SQLModel, table=True):
    __tablename__ = "report_item_photo"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    report_item_id: UUID = Field(foreign_key="report_item.id", index=True)
    storage_path: str = Field(max_length=512, description="Object key in the photo bucket")
    content_type: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), index=True)


# --- API schemas ---

class ReportUpdate(ReportBase):
    """PATCH body; only fields present in the request are written."""


class ItemUpdate(SQLModel):
    title: Optional[str] = Field(default=None, max_length=255)
    result: Optional[ItemResult] = None
    notes: Optional[str] = None


class PhotoPublic(SQLModel):
    id: UUID
    report_item_id: UUID
    storage_path: str
    url: Optional[str] = None


class ItemPublic(SQLModel):
    id: UUID
    report_id: UUID
    idx: int
    title: str
    result: ItemResult
    notes: str


class ReportSummary(ReportBase):
    id: UUID
    status: ReportStatus
    created_by: str
    created_at: datetime
    updated_at: datetime


class ReportDetail(ReportSummary):
    items: List[ItemPublic] = []
