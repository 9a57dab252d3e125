from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from folio.core.database import Base


class ResumeStatus(str, enum.Enum):
  DRAFT = "draft"
  PENDING = "pending"
  COMPLETED = "completed"
  FAILED = "failed"


class Resume(Base):
  __tablename__ = "resumes"
  __table_args__ = (Index("ix_resumes_user_updated", "user_id", "updated_at"),)

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False, default="")
  content: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  status: Mapped[ResumeStatus] = mapped_column(Enum(ResumeStatus, name="resume_status", values_callable=lambda x: [e.value for e in x]), nullable=False, default=ResumeStatus.DRAFT)
  pdf_url: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Template(Base):
  __tablename__ = "templates"

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False, default="")
  content: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
  preview_image_url: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
