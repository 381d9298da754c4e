from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base

STATUS_NOT_STARTED = "not_started"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
PROGRESS_STATUSES = (STATUS_NOT_STARTED, STATUS_PROCESSING, STATUS_COMPLETED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookMetadata(Base):
    __tablename__ = "books_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_path: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)

    # null until extraction succeeds, then all three are set
    grade: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    semester: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ProcessingProgress(Base):
    __tablename__ = "processing_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # matches BookMetadata.file_path by value, no foreign key
    file_path: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=STATUS_NOT_STARTED, nullable=False)
    last_processed_page: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    questions_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in PROGRESS_STATUSES) + ")",
            name="ck_processing_progress_status",
        ),
    )
    __mapper_args__ = {"version_id_col": version}


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    question_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)

    choice_1: Mapped[str] = mapped_column(Text, nullable=False)
    choice_2: Mapped[str] = mapped_column(Text, nullable=False)
    choice_3: Mapped[str] = mapped_column(Text, nullable=False)
    choice_4: Mapped[str] = mapped_column(Text, nullable=False)

    correct_choice: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(16), nullable=False)  # easy|medium|hard

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
