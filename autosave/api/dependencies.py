# api/dependencies.py

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from ..config import Settings
from ..services.auto_save_service import AutoSaveService


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_auto_save_service(request: Request) -> AutoSaveService:
    """The service is built once in the app lifespan and shared by every request."""
    return request.app.state.auto_save_service


def verify_api_key(
    x_api_key: str = Header(..., alias="X-API-Key"),
    settings: Settings = Depends(get_settings_from_app),
):
    """
    FastAPI Dependency to validate the API key sent in the X-API-Key header.
    """
    expected_key = settings.api_key

    # Server Configuration Error (500)
    if not expected_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error: AUTOSAVE_API_KEY not set for secure validation.",
        )

    # Key Validation (401 Unauthorized)
    if not secrets.compare_digest(x_api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API Key",
        )


async def get_current_user_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1)) -> str:
    """The calling gateway authenticates the user and forwards the id."""
    return x_user_id


ServiceDependency = Annotated[AutoSaveService, Depends(get_auto_save_service)]
UserDependency = Annotated[str, Depends(get_current_user_id)]
