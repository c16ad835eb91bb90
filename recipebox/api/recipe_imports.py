"""Recipe import API endpoints."""

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from recipebox.api.dependencies import get_current_user, get_import_pipeline
from recipebox.errors import ErrorCode, RecipeImportError
from recipebox.models.recipe_import import RecipeImportJob
from recipebox.models.user import User
from recipebox.schemas.recipe_import import (
    FinalizeRequest,
    FinalizeResponse,
    ImageJobCreate,
    ImageProcessRequest,
    RecipeImportJobResponse,
    RecipeImportUpdate,
    TextImportRequest,
    TranslateRequest,
    UrlImportRequest,
)
from recipebox.services.import_pipeline import RecipeImportPipeline

router = APIRouter(prefix="/api/v1/recipe-imports", tags=["recipe-imports"])

ERROR_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.AUTH_ERROR: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.DUPLICATE: status.HTTP_409_CONFLICT,
    ErrorCode.DB_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.AI_PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.AI_EXTRACTION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.INVALID_URL: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NETWORK_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}

Pipeline = Annotated[RecipeImportPipeline, Depends(get_import_pipeline)]
CurrentUser = Annotated[User, Depends(get_current_user)]


def raise_http_error(error: RecipeImportError) -> NoReturn:
    """Convert a typed import error into an HTTP response."""
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": error.code.value, "message": error.message, **error.details},
    ) from error


def _job_response(job: RecipeImportJob) -> RecipeImportJobResponse:
    return RecipeImportJobResponse.model_validate(job)


@router.post("/images", response_model=RecipeImportJobResponse, status_code=status.HTTP_201_CREATED)
async def create_image_job(data: ImageJobCreate, current_user: CurrentUser, pipeline: Pipeline):
    """Register a photo upload (1-5 photos of one recipe)."""
    try:
        job = pipeline.create_image_job(
            current_user.id, [f.model_dump() for f in data.files], data.target_locale
        )
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/url", response_model=RecipeImportJobResponse, status_code=status.HTTP_201_CREATED)
async def import_from_url(data: UrlImportRequest, current_user: CurrentUser, pipeline: Pipeline):
    """Import a recipe from a web page."""
    try:
        job = await pipeline.import_from_url(current_user.id, data.url, data.target_locale)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/text", response_model=RecipeImportJobResponse, status_code=status.HTTP_201_CREATED)
async def import_from_text(data: TextImportRequest, current_user: CurrentUser, pipeline: Pipeline):
    """Import a recipe from pasted text."""
    try:
        job = await pipeline.import_from_text(current_user.id, data.text, data.target_locale)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/blank", response_model=RecipeImportJobResponse, status_code=status.HTTP_201_CREATED)
async def create_blank_job(
    current_user: CurrentUser, pipeline: Pipeline, locale: str | None = None
):
    """Start an empty recipe to fill in by hand."""
    return _job_response(pipeline.create_blank_job(current_user.id, locale))


@router.get("/{job_id}", response_model=RecipeImportJobResponse)
async def get_job(job_id: str, current_user: CurrentUser, pipeline: Pipeline):
    """Get an import job and its extracted recipe."""
    try:
        job = pipeline.get_job(current_user.id, job_id)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/{job_id}/process", response_model=RecipeImportJobResponse)
async def process_images(
    job_id: str, data: ImageProcessRequest, current_user: CurrentUser, pipeline: Pipeline
):
    """Extract the recipe from the uploaded photos."""
    try:
        job = await pipeline.process_images(current_user.id, job_id, data.images)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.patch("/{job_id}", response_model=RecipeImportJobResponse)
async def update_job(
    job_id: str, data: RecipeImportUpdate, current_user: CurrentUser, pipeline: Pipeline
):
    """Save review edits to the extracted recipe."""
    try:
        job = pipeline.update_extracted(
            current_user.id, job_id, data.model_dump(mode="json", exclude_unset=True)
        )
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/{job_id}/translate", response_model=RecipeImportJobResponse)
async def translate_job(
    job_id: str, data: TranslateRequest, current_user: CurrentUser, pipeline: Pipeline
):
    """Translate the extracted recipe into another language."""
    try:
        job = await pipeline.translate_job(current_user.id, job_id, data.target_locale)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/{job_id}/retry", response_model=RecipeImportJobResponse)
async def retry_job(job_id: str, current_user: CurrentUser, pipeline: Pipeline):
    """Reset a failed job so it can be processed again."""
    try:
        job = pipeline.retry_job(current_user.id, job_id)
    except RecipeImportError as e:
        raise_http_error(e)
    return _job_response(job)


@router.post("/{job_id}/finalize", response_model=FinalizeResponse)
async def finalize_job(
    job_id: str, data: FinalizeRequest, current_user: CurrentUser, pipeline: Pipeline
):
    """Save the reviewed recipe. Repeating the call returns the same recipe."""
    try:
        recipe_id = pipeline.finalize(current_user.id, job_id, data.meal_slot)
    except RecipeImportError as e:
        raise_http_error(e)
    return FinalizeResponse(recipe_id=recipe_id)
