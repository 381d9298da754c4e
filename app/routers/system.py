from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.core.deps import get_settings_dep, get_storage_service
from app.models.books import StorageStatus
from app.services.storage import StorageService

router = APIRouter(tags=["system"])


@router.get("/health")
def health():
    s = get_settings()
    return {"status": "ok", "version": s.APP_VERSION}


@router.get("/version")
def version():
    s = get_settings()
    return {"name": s.APP_NAME, "version": s.APP_VERSION, "env": s.APP_ENV}


@router.get("/v1/system/storage", response_model=StorageStatus)
def storage_status(
    storage: StorageService = Depends(get_storage_service),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Storage check for the dashboard's debug panel: buckets present and book files.
    """
    files = [obj.name for obj in storage.list(settings.BOOKS_BUCKET)]
    return StorageStatus(buckets=storage.list_buckets(), booksBucket=settings.BOOKS_BUCKET, files=files)
