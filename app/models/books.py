from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgressStatus(str, Enum):
    not_started = "not_started"
    processing = "processing"
    completed = "completed"


class QuestionDifficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


# -------------------
# Rows
# -------------------
class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_path: str
    status: ProgressStatus
    last_processed_page: int = Field(..., ge=0)
    questions_generated: int = Field(..., ge=0)
    created_at: datetime


class BookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_path: str
    grade: Optional[str] = None
    subject: Optional[str] = None
    semester: Optional[str] = None
    created_at: datetime


class BookWithProgress(BookOut):
    progress: Optional[ProgressOut] = None
    statusText: str = Field(..., description="Human-readable status for the dashboard")
    difficultyLabel: Optional[str] = Field(None, description="easy / medium / hard, once the grade is known")


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: int
    question_number: int
    question_text: str
    choice_1: str
    choice_2: str
    choice_3: str
    choice_4: str
    correct_choice: str
    category: str
    difficulty_level: QuestionDifficulty
    created_at: datetime


# -------------------
# Handlers
# -------------------
class FilePathRequest(BaseModel):
    # optional here so that a missing value is answered with our own 400
    filePath: Optional[str] = Field(None, description="Object name in the books bucket")


class ScanResponse(BaseModel):
    success: bool = True
    message: str = "Basic scan completed"
    newBooksCount: int
    totalBooksCount: int


class MetadataOut(BaseModel):
    grade: str
    subject: str
    semester: str


class ExtractMetadataResponse(BaseModel):
    success: bool = True
    metadata: MetadataOut


class GenerateQuestionsResponse(BaseModel):
    success: bool = True
    message: str = "Question generation started"
    bookId: int
    startPage: int = Field(..., ge=1)
    difficultyLevel: str = Field(..., pattern=r"^\d{2}$")


class CancelResponse(BaseModel):
    success: bool = True


class ExportResponse(BaseModel):
    success: bool = True
    fileName: str


class UploadResponse(BaseModel):
    success: bool = True
    filePath: str
    bookId: int
    size: int
    pages: int


# -------------------
# Worker callback
# -------------------
class QuestionIn(BaseModel):
    question_number: Optional[int] = Field(None, ge=1)
    question_text: str = Field(..., min_length=1)
    choice_1: str
    choice_2: str
    choice_3: str
    choice_4: str
    correct_choice: str
    category: str = ""
    difficulty_level: QuestionDifficulty = QuestionDifficulty.medium

    def choices(self) -> List[str]:
        return [self.choice_1, self.choice_2, self.choice_3, self.choice_4]


class QuestionBatchIn(BaseModel):
    page: int = Field(..., ge=1, description="Last page processed by the worker")
    questions: List[QuestionIn] = Field(default_factory=list)
    completed: bool = False


class StorageStatus(BaseModel):
    success: bool = True
    buckets: List[str]
    booksBucket: str
    files: List[str]
