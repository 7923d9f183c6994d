"""PortraitForge - FastAPI Application.

This module is the HTTP entry point for the prompt template engine.  It
defines the ``create_app`` factory, the default ``app`` instance, all REST API
routes, and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The API is a thin adapter over :mod:`portraitforge.core`:

- **Compilation** is performed by a :class:`~portraitforge.core.prompt_builder.PromptBuilder`
  created on startup and stored on ``app.state``.
- **Template persistence** uses a single ``templates.json`` file read through
  :class:`~portraitforge.core.template_store.TemplateStore`.
- **Errors** raised by the engine are mapped to HTTP status codes by a single
  exception handler.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/api/config``               Version and engine limits
POST      ``/api/prompt/compile``       Compile a stored or inline template
POST      ``/api/templates/validate``   Validate an inline template
GET       ``/api/templates``            List stored templates
GET       ``/api/templates/{id}``       Single stored template
GET       ``/api/styles``               List styles (filters)
GET       ``/api/styles/random``        Random style selection
POST      ``/api/styles/recommend``     Preference-based recommendations
GET       ``/api/styles/{id}``          Single style
GET       ``/api/cache/stats``          Cache and compile statistics
POST      ``/api/cache/invalidate``     Invalidate cache entries by pattern
DELETE    ``/api/cache``                Clear the cache
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    portraitforge

Direct invocation::

    python -m portraitforge.api.main
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portraitforge import __version__
from portraitforge.api.models import (
    CompileRequest,
    InvalidateRequest,
    RecommendRequest,
    ValidateRequest,
)
from portraitforge.core.config import EngineConfig, config
from portraitforge.core.errors import (
    CompilationError,
    TemplateEngineError,
    TemplateNotFoundError,
    ValidationError,
    VariableError,
)
from portraitforge.core.prompt_builder import PromptBuilder, create_builder
from portraitforge.core.template_store import TemplateStore

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[TemplateEngineError], int] = {
    ValidationError: 422,
    VariableError: 400,
    CompilationError: 400,
    TemplateNotFoundError: 404,
}

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Application lifecycle: engine setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the :class:`PromptBuilder` (seeded styles, started cache
        sweeper) and the :class:`TemplateStore`, sharing one style registry,
        and stores both on ``app.state``.

    On shutdown:
        Closes the builder, stopping the cache sweep thread.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    engine_config: EngineConfig = app.state.config
    builder = create_builder(engine_config)
    app.state.builder = builder
    app.state.store = TemplateStore(engine_config.templates_file, themes=builder.themes)
    logger.info(f"PromptBuilder initialised (templates: {engine_config.templates_file}).")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    builder.close()
    logger.info("PromptBuilder closed on shutdown.")


def status_for(error: TemplateEngineError) -> int:
    """Return the HTTP status code for an engine error."""
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


async def engine_error_handler(request: Request, exc: TemplateEngineError) -> JSONResponse:
    """Render engine errors as ``{detail, code, template_id, variable_id}``."""
    body = exc.to_dict()
    if isinstance(exc, ValidationError) and exc.result is not None:
        body["validation"] = exc.result.to_dict()
    status = status_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status, content=body)


def create_app(engine_config: EngineConfig | None = None) -> FastAPI:
    """Build a FastAPI application around an engine configuration.

    Args:
        engine_config: Configuration to use (defaults to the global config).

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="PortraitForge",
        description="Prompt template compilation API for wedding portrait generation.",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.config = engine_config or config

    # Allow cross-origin requests so a frontend can be served from a
    # different port during development.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(TemplateEngineError, engine_error_handler)
    application.include_router(router)
    return application


def _builder(request: Request) -> PromptBuilder:
    return request.app.state.builder


def _store(request: Request) -> TemplateStore:
    return request.app.state.store


# ---------------------------------------------------------------------------
# Configuration and compilation.
# ---------------------------------------------------------------------------


@router.get("/config")
async def get_config(request: Request) -> dict:
    """Return the API version and the engine limits.

    Returns:
        Dictionary with ``version``, ``validation_level``, ``caching``,
        ``debug`` and ``limits`` (template size and variable count).
    """
    engine_config: EngineConfig = request.app.state.config
    return {
        "version": __version__,
        "validation_level": engine_config.validation_level,
        "caching": engine_config.enable_caching,
        "debug": engine_config.enable_debug_mode,
        "limits": {
            "max_template_size": engine_config.max_template_size,
            "max_variable_count": engine_config.max_variable_count,
        },
    }


@router.post("/prompt/compile")
async def compile_prompt(req: CompileRequest, request: Request) -> dict:
    """Compile a stored or inline template with a runtime context.

    Args:
        req: Validated :class:`CompileRequest` payload.

    Returns:
        The serialised ``CompiledResult`` (prompt, metadata, warnings, errors).

    Raises:
        TemplateNotFoundError: 404 for an unknown ``template_id``.
        ValidationError: 422 when the template fails validation.
        CompilationError, VariableError: 400.
    """
    template = req.template if req.template is not None else _store(request).get(req.template_id)
    result = _builder(request).compile(template, req.context, req.options)
    return result.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Templates.
# ---------------------------------------------------------------------------


@router.post("/templates/validate")
async def validate_template(req: ValidateRequest, request: Request) -> dict:
    """Validate an inline template and return the scored report."""
    return _builder(request).validate(req.template).to_dict()


@router.get("/templates")
async def list_templates(request: Request, portrait_type: str | None = None) -> dict:
    """List stored templates, optionally for one portrait type."""
    templates = _store(request).list_templates(portrait_type)
    return {"templates": [t.model_dump(mode="json") for t in templates]}


@router.get("/templates/{template_id}")
async def get_template(template_id: str, request: Request) -> dict:
    """Return one stored template.

    Raises:
        TemplateNotFoundError: 404 if the template does not exist.
    """
    return _store(request).get(template_id).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Styles.
# ---------------------------------------------------------------------------


@router.get("/styles")
async def list_styles(
    request: Request,
    category: str | None = None,
    enabled: bool | None = None,
    featured: bool | None = None,
    premium_only: bool | None = None,
) -> dict:
    """List styles by descending popularity, with optional filters."""
    styles = _builder(request).themes.list_styles(
        category=category, enabled=enabled, featured=featured, premium_only=premium_only
    )
    return {"styles": [s.model_dump(mode="json") for s in styles]}


@router.get("/styles/random")
async def random_styles(
    request: Request,
    count: int = Query(default=3, ge=1, le=20),
    exclude: list[str] = Query(default=[]),
    favor_featured: bool = False,
) -> dict:
    """Return a random selection of distinct enabled styles."""
    styles = _builder(request).themes.random_selection(
        count, exclude_ids=exclude, favor_featured=favor_featured
    )
    return {"styles": [s.model_dump(mode="json") for s in styles]}


@router.post("/styles/recommend")
async def recommend_styles(req: RecommendRequest, request: Request) -> dict:
    """Rank enabled styles against the given preferences."""
    styles = _builder(request).themes.recommend(req.preferences, req.count)
    return {"styles": [s.model_dump(mode="json") for s in styles]}


@router.get("/styles/{style_id}")
async def get_style(style_id: str, request: Request) -> dict:
    """Return one style.

    Raises:
        HTTPException: 404 if the style is not registered.
    """
    style = _builder(request).themes.get(style_id)
    if style is None:
        raise HTTPException(status_code=404, detail=f"Style not found: {style_id}")
    return style.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Cache administration.
# ---------------------------------------------------------------------------


@router.get("/cache/stats")
async def cache_stats(request: Request) -> dict:
    """Return cache statistics and, when available, compile statistics."""
    builder = _builder(request)
    stats_hook = builder.stats_hook
    return {
        "cache": builder.cache_stats().to_dict(),
        "compile": stats_hook.snapshot() if stats_hook is not None else None,
    }


@router.post("/cache/invalidate")
async def invalidate_cache(req: InvalidateRequest, request: Request) -> dict:
    """Invalidate cache entries whose keys match a pattern.

    Raises:
        HTTPException: 400 if ``regex`` is set and the pattern does not compile.
    """
    try:
        removed = _builder(request).cache.invalidate(req.pattern, regex=req.regex)
    except re.error as e:
        raise HTTPException(status_code=400, detail=f"Invalid pattern: {e}") from e
    return {"invalidated": removed}


@router.delete("/cache")
async def clear_cache(request: Request) -> dict:
    """Drop every cache entry and reset cache statistics."""
    _builder(request).clear_cache()
    return {"cleared": True}


# ---------------------------------------------------------------------------
# Default application instance and CLI entry point.
# ---------------------------------------------------------------------------

app = create_app()


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~portraitforge.core.config.config` (which
    loads from ``PORTRAITFORGE_SERVER_HOST`` and ``PORTRAITFORGE_SERVER_PORT``
    environment variables).

    This function is registered as the ``portraitforge`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if config.enable_debug_mode else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "portraitforge.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
