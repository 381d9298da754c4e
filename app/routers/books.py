from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from starlette.status import HTTP_201_CREATED

from app.core.config import Settings
from app.core.deps import get_book_service, get_settings_dep, get_storage_service
from app.core.errors import NotFoundError
from app.core.security import get_api_key
from app.models.books import (
    BookWithProgress,
    CancelResponse,
    ExportResponse,
    FilePathRequest,
    ProgressOut,
    QuestionBatchIn,
    QuestionOut,
    UploadResponse,
)
from app.services.book_service import BookService
from app.services.storage import StorageService

router = APIRouter(prefix="/v1", tags=["books"])


@router.get("/books", response_model=List[BookWithProgress])
def list_books(service: BookService = Depends(get_book_service)):
    return service.list_books()


@router.post("/books/upload", response_model=UploadResponse, status_code=HTTP_201_CREATED)
def upload_book(
    file: UploadFile = File(...),
    service: BookService = Depends(get_book_service),
    _: str = Depends(get_api_key),  # upload is protected by API key
):
    return service.upload_book(file.filename, file.file.read())


@router.post("/books/cancel", response_model=CancelResponse)
def cancel_processing(body: FilePathRequest, service: BookService = Depends(get_book_service)):
    return service.cancel(body.filePath)


@router.get("/books/{book_id}/questions", response_model=List[QuestionOut])
def list_questions(book_id: int, service: BookService = Depends(get_book_service)):
    return service.list_questions(book_id)


@router.post("/books/{book_id}/questions", response_model=ProgressOut)
def record_questions(
    book_id: int,
    body: QuestionBatchIn,
    service: BookService = Depends(get_book_service),
):
    """
    Called by the question-generation worker after each processed page.
    Answers 409 once processing was cancelled, the worker must stop then.
    """
    return service.record_questions(book_id, body)


@router.post("/books/{book_id}/export", response_model=ExportResponse)
def export_questions(book_id: int, service: BookService = Depends(get_book_service)):
    return service.export_csv(book_id)


@router.get("/books/{book_id}/pdf")
def view_pdf(book_id: int, service: BookService = Depends(get_book_service)):
    path = service.book_pdf_path(book_id)
    return FileResponse(path, media_type="application/pdf", filename=path.name)


@router.get("/exports/{file_name}")
def download_export(
    file_name: str,
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_settings_dep),
):
    if not storage.exists(settings.OUTPUT_BUCKET, file_name):
        raise NotFoundError("Export not found", details={"fileName": file_name})
    return FileResponse(
        storage.object_path(settings.OUTPUT_BUCKET, file_name),
        media_type="text/csv",
        filename=file_name,
    )
