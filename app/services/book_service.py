import logging
import os
import time
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import AppError, ConflictError, NotFoundError, UpstreamError, ValidationError
from app.db.models import (
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_PROCESSING,
    BookMetadata,
    ProcessingProgress,
    Question,
)
from app.models.books import (
    BookOut,
    BookWithProgress,
    CancelResponse,
    ExportResponse,
    ExtractMetadataResponse,
    GenerateQuestionsResponse,
    MetadataOut,
    ProgressOut,
    QuestionBatchIn,
    ScanResponse,
    UploadResponse,
)
from app.services.metadata_extractor import MetadataExtractor
from app.services.storage import StorageService
from app.utils.csv_export import format_export_filename, render_questions_csv
from app.utils.difficulty import difficulty_code_for_grade, difficulty_label_for_grade
from app.utils.pdf_extract import count_pages, extract_excerpt

logger = logging.getLogger(__name__)


def status_text(progress: Optional[ProcessingProgress]) -> str:
    if progress is None:
        return "Not started"
    if progress.status == STATUS_COMPLETED:
        return f"Completed ({progress.questions_generated} questions)"
    if progress.status == STATUS_PROCESSING:
        return (
            f"Processing: {progress.questions_generated} questions, "
            f"page {progress.last_processed_page}"
        )
    return "Not started"


class BookService:
    """
    Book pipeline: upload -> scan -> extract-metadata -> generate-questions -> export.
    One instance per request; every public method commits its own writes.
    """

    def __init__(
        self,
        db: Session,
        storage: StorageService,
        extractor: Optional[MetadataExtractor] = None,
        books_bucket: str = "books",
        output_bucket: str = "output",
        excerpt_pages: int = 3,
        excerpt_chars: int = 4000,
    ) -> None:
        self.db = db
        self.storage = storage
        self.extractor = extractor
        self.books_bucket = books_bucket
        self.output_bucket = output_bucket
        self.excerpt_pages = excerpt_pages
        self.excerpt_chars = excerpt_chars

    # ---------- public API ----------

    def scan(self) -> ScanResponse:
        """
        Register every PDF of the books bucket that has no metadata row yet.
        """
        try:
            stored = self.storage.list(self.books_bucket)
        except AppError as e:
            raise UpstreamError("Failed to list storage files", details=e.details or e.message)

        try:
            existing = set(self.db.execute(select(BookMetadata.file_path)).scalars().all())
        except SQLAlchemyError as e:
            raise UpstreamError("Failed to get existing books", details=str(e))

        new_paths = [
            obj.name
            for obj in stored
            if obj.name.lower().endswith(".pdf") and obj.name not in existing
        ]

        if new_paths:
            try:
                self.db.add_all(
                    [BookMetadata(file_path=p, grade=None, subject=None, semester=None) for p in new_paths]
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise UpstreamError("Failed to insert new books", details=str(e))
            logger.info("Scan registered %d new book(s): %s", len(new_paths), new_paths)
        else:
            logger.info("Scan found no new books")

        return ScanResponse(newBooksCount=len(new_paths), totalBooksCount=len(existing) + len(new_paths))

    def extract_metadata(self, file_path: Optional[str]) -> ExtractMetadataResponse:
        file_path = self._require_file_path(file_path)
        if self.extractor is None:
            raise UpstreamError("Metadata extractor not configured")

        try:
            data = self.storage.download(self.books_bucket, file_path)
        except AppError as e:
            raise UpstreamError("Failed to download file", details=e.details or e.message)

        excerpt = extract_excerpt(data, max_pages=self.excerpt_pages, max_chars=self.excerpt_chars)
        if not excerpt:
            logger.info("No text layer in %s, using the file name as excerpt", file_path)
            excerpt = f"File name: {file_path}"

        metadata = self.extractor.extract(excerpt)

        try:
            book = self._find_book_by_path(file_path)
            if book is None:
                book = BookMetadata(file_path=file_path)
                self.db.add(book)
            book.grade = metadata.grade
            book.subject = metadata.subject
            book.semester = metadata.semester

            if self._find_progress(file_path) is None:
                self.db.add(
                    ProcessingProgress(
                        file_path=file_path,
                        status=STATUS_NOT_STARTED,
                        last_processed_page=0,
                        questions_generated=0,
                    )
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise UpstreamError("Failed to update metadata", details=str(e))

        logger.info("Metadata for %s: %s", file_path, metadata.as_dict())
        return ExtractMetadataResponse(metadata=MetadataOut(**metadata.as_dict()))

    def start_generation(self, file_path: Optional[str]) -> GenerateQuestionsResponse:
        """
        Flag the book as processing and hand back where the worker should start.
        Questions themselves are written later through ``record_questions``.
        """
        file_path = self._require_file_path(file_path)

        book = self._find_book_by_path(file_path)
        if book is None:
            raise NotFoundError("Book metadata not found", details={"filePath": file_path})
        progress = self._find_progress(file_path)
        if progress is None:
            raise NotFoundError("Processing progress not found", details={"filePath": file_path})

        progress.status = STATUS_PROCESSING
        self._commit_progress(file_path)

        difficulty = difficulty_code_for_grade(book.grade)
        logger.info("Generation started for %s (grade=%s, code=%s)", file_path, book.grade, difficulty)
        return GenerateQuestionsResponse(
            bookId=book.id,
            startPage=progress.last_processed_page + 1,
            difficultyLevel=difficulty,
        )

    def cancel(self, file_path: Optional[str]) -> CancelResponse:
        """
        Reset status to not_started whatever it was. Does not stop a running worker.
        """
        file_path = self._require_file_path(file_path)

        progress = self._find_progress(file_path)
        if progress is None:
            logger.info("Cancel on %s: no progress row", file_path)
            return CancelResponse()

        if progress.status != STATUS_NOT_STARTED:
            progress.status = STATUS_NOT_STARTED
            self._commit_progress(file_path)
        logger.info("Processing of %s reset to not_started", file_path)
        return CancelResponse()

    def record_questions(self, book_id: int, batch: QuestionBatchIn) -> ProgressOut:
        book, progress = self._get_book_and_progress(book_id)
        if progress.status != STATUS_PROCESSING:
            raise ConflictError(
                "Processing is not active for this book",
                details={"bookId": book_id, "status": progress.status},
            )

        next_number = progress.questions_generated + 1
        for item in batch.questions:
            if item.correct_choice not in item.choices():
                logger.warning(
                    "Book %s question %s: correct_choice matches none of the choices",
                    book_id,
                    item.question_number or next_number,
                )
            self.db.add(
                Question(
                    book_id=book.id,
                    question_number=item.question_number or next_number,
                    question_text=item.question_text,
                    choice_1=item.choice_1,
                    choice_2=item.choice_2,
                    choice_3=item.choice_3,
                    choice_4=item.choice_4,
                    correct_choice=item.correct_choice,
                    category=item.category,
                    difficulty_level=item.difficulty_level.value,
                )
            )
            next_number += 1

        progress.questions_generated += len(batch.questions)
        progress.last_processed_page = max(progress.last_processed_page, batch.page)
        if batch.completed:
            progress.status = STATUS_COMPLETED
        self._commit_progress(book.file_path)

        logger.info(
            "Book %s: +%d question(s), page %d, status=%s",
            book_id,
            len(batch.questions),
            progress.last_processed_page,
            progress.status,
        )
        return ProgressOut.model_validate(progress)

    def list_questions(self, book_id: int) -> List[Question]:
        self._get_book(book_id)
        return list(
            self.db.execute(
                select(Question).where(Question.book_id == book_id).order_by(Question.question_number, Question.id)
            ).scalars()
        )

    def export_csv(self, book_id: int) -> ExportResponse:
        book = self._get_book(book_id)
        questions = self.list_questions(book_id)

        content = render_questions_csv(questions)
        file_name = format_export_filename(book.grade, book.subject, book.semester)

        try:
            self.storage.upload(self.output_bucket, file_name, content.encode("utf-8"), upsert=True)
        except AppError as e:
            raise UpstreamError("Error uploading CSV", details=e.details or e.message)

        logger.info("Exported %d question(s) of book %s to %s", len(questions), book_id, file_name)
        return ExportResponse(fileName=file_name)

    def list_books(self) -> List[BookWithProgress]:
        books = self.db.execute(
            select(BookMetadata).order_by(BookMetadata.created_at.desc(), BookMetadata.id.desc())
        ).scalars().all()
        progress_by_path = {
            p.file_path: p for p in self.db.execute(select(ProcessingProgress)).scalars().all()
        }

        out: List[BookWithProgress] = []
        for book in books:
            progress = progress_by_path.get(book.file_path)
            out.append(
                BookWithProgress(
                    **BookOut.model_validate(book).model_dump(),
                    progress=ProgressOut.model_validate(progress) if progress else None,
                    statusText=status_text(progress),
                    difficultyLabel=difficulty_label_for_grade(book.grade) if book.grade else None,
                )
            )
        return out

    def upload_book(self, filename: Optional[str], data: bytes) -> UploadResponse:
        """
        Store a PDF as ``{epoch_ms}_{name}`` and register it right away.
        """
        name = os.path.basename((filename or "").replace("\\", "/")).strip()
        if not name.lower().endswith(".pdf"):
            raise ValidationError("Only PDF files are accepted", status_code=415)

        object_name = f"{int(time.time() * 1000)}_{name}"
        self.storage.upload(self.books_bucket, object_name, data)

        book = BookMetadata(file_path=object_name)
        try:
            self.db.add(book)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise UpstreamError("Failed to register uploaded book", details=str(e))

        logger.info("Uploaded %s (%d bytes) as book %s", object_name, len(data), book.id)
        return UploadResponse(filePath=object_name, bookId=book.id, size=len(data), pages=count_pages(data))

    def book_pdf_path(self, book_id: int):
        book = self._get_book(book_id)
        if not self.storage.exists(self.books_bucket, book.file_path):
            raise NotFoundError("PDF not found in storage", details={"filePath": book.file_path})
        return self.storage.object_path(self.books_bucket, book.file_path)

    # ---------- internals ----------

    @staticmethod
    def _require_file_path(file_path: Optional[str]) -> str:
        if not file_path or not file_path.strip():
            raise ValidationError("File path is required")
        return file_path.strip()

    def _find_book_by_path(self, file_path: str) -> Optional[BookMetadata]:
        return self.db.execute(
            select(BookMetadata).where(BookMetadata.file_path == file_path)
        ).scalar_one_or_none()

    def _find_progress(self, file_path: str) -> Optional[ProcessingProgress]:
        return self.db.execute(
            select(ProcessingProgress).where(ProcessingProgress.file_path == file_path)
        ).scalar_one_or_none()

    def _get_book(self, book_id: int) -> BookMetadata:
        book = self.db.get(BookMetadata, book_id)
        if book is None:
            raise NotFoundError("Book metadata not found", details={"bookId": book_id})
        return book

    def _get_book_and_progress(self, book_id: int) -> Tuple[BookMetadata, ProcessingProgress]:
        book = self._get_book(book_id)
        progress = self._find_progress(book.file_path)
        if progress is None:
            raise NotFoundError("Processing progress not found", details={"bookId": book_id})
        return book, progress

    def _commit_progress(self, file_path: str) -> None:
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConflictError(
                "Processing progress was modified concurrently, retry",
                details={"filePath": file_path},
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise UpstreamError("Failed to update processing progress", details=str(e))
