from fastapi import Depends, Security
from fastapi.security.api_key import APIKeyHeader
from starlette.status import HTTP_401_UNAUTHORIZED

from app.core.config import Settings, get_settings
from app.core.errors import AppError

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def get_api_key(
    api_key: str = Security(api_key_header),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Check the API key sent in the x-api-key header.
    """
    if api_key and api_key == settings.API_KEY:
        return api_key
    raise AppError("Invalid API key", status_code=HTTP_401_UNAUTHORIZED)
