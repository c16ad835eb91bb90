"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from recipebox.api import auth, recipe_imports, recipes
from recipebox.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.recipe_import_debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    yield


app = FastAPI(
    title="Recipebox API",
    description="Recipe import from photos, web pages and pasted text",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(auth.router)
app.include_router(recipe_imports.router)
app.include_router(recipes.router)

# Images stored by LocalImageStorage, served under their public URLs
if settings.image_public_base_url.startswith("/"):
    Path(settings.image_storage_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.image_public_base_url.rstrip("/"),
        StaticFiles(directory=settings.image_storage_dir),
        name="recipe-images",
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
