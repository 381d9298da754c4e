from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.database import get_db
from app.services.book_service import BookService
from app.services.metadata_extractor import MetadataExtractor
from app.services.storage import MB, Bucket, StorageService


def get_settings_dep() -> Settings:
    return get_settings()


def get_storage_service(settings: Settings = Depends(get_settings_dep)) -> StorageService:
    """
    Storage service with the books/output buckets ready.
    """
    return StorageService(
        base_path=settings.STORAGE_PATH,
        buckets=[
            Bucket(settings.BOOKS_BUCKET, settings.BOOKS_MAX_MB * MB),
            Bucket(settings.OUTPUT_BUCKET, settings.OUTPUT_MAX_MB * MB),
        ],
    )


def get_metadata_extractor(settings: Settings = Depends(get_settings_dep)) -> MetadataExtractor:
    return MetadataExtractor.from_settings(settings)


def get_book_service(
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    extractor: MetadataExtractor = Depends(get_metadata_extractor),
    settings: Settings = Depends(get_settings_dep),
) -> BookService:
    return BookService(
        db=db,
        storage=storage,
        extractor=extractor,
        books_bucket=settings.BOOKS_BUCKET,
        output_bucket=settings.OUTPUT_BUCKET,
        excerpt_pages=settings.METADATA_EXCERPT_PAGES,
        excerpt_chars=settings.METADATA_EXCERPT_CHARS,
    )
