from fastapi import APIRouter, Depends

from app.core.deps import get_book_service
from app.models.books import (
    ExtractMetadataResponse,
    FilePathRequest,
    GenerateQuestionsResponse,
    ScanResponse,
)
from app.services.book_service import BookService

# request handlers called by the dashboard, one per pipeline step
router = APIRouter(prefix="/v1/functions", tags=["functions"])


@router.post("/basic-scan", response_model=ScanResponse)
def basic_scan(service: BookService = Depends(get_book_service)):
    return service.scan()


@router.post("/extract-metadata", response_model=ExtractMetadataResponse)
def extract_metadata(body: FilePathRequest, service: BookService = Depends(get_book_service)):
    return service.extract_metadata(body.filePath)


@router.post("/generate-questions", response_model=GenerateQuestionsResponse)
def generate_questions(body: FilePathRequest, service: BookService = Depends(get_book_service)):
    return service.start_generation(body.filePath)
