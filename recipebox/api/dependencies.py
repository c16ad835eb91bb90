"""FastAPI dependencies for authentication, database and the import pipeline."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from recipebox.config import Settings, get_settings
from recipebox.database import get_db
from recipebox.models.user import User
from recipebox.services.ai_extraction import RecipeExtractionOrchestrator
from recipebox.services.auth import decode_access_token
from recipebox.services.html_fetcher import SecureHtmlFetcher
from recipebox.services.image_storage import ImageDownloader, ImageStorage, LocalImageStorage
from recipebox.services.import_pipeline import RecipeImportPipeline
from recipebox.services.llm import GenerationProvider, get_generation_provider
from recipebox.services.translation import RecipeTranslator

security = HTTPBearer()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub") if payload else None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


@lru_cache
def get_provider() -> GenerationProvider:
    """Process-wide generation provider."""
    return get_generation_provider(get_settings())


def get_html_fetcher() -> SecureHtmlFetcher:
    """Get an SSRF-safe fetcher."""
    return SecureHtmlFetcher(get_settings())


def get_image_storage() -> ImageStorage:
    """Get the image store."""
    return LocalImageStorage(get_settings())


def get_import_pipeline(
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[GenerationProvider, Depends(get_provider)],
    fetcher: Annotated[SecureHtmlFetcher, Depends(get_html_fetcher)],
    storage: Annotated[ImageStorage, Depends(get_image_storage)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RecipeImportPipeline:
    """Get the import pipeline with its dependencies."""
    return RecipeImportPipeline(
        db,
        orchestrator=RecipeExtractionOrchestrator(provider, settings),
        fetcher=fetcher,
        translator=RecipeTranslator(provider, settings),
        image_downloader=ImageDownloader(fetcher, storage, settings),
        settings=settings,
    )
