"""PortraitForge - FastAPI REST API layer.

This package exposes the prompt template engine over HTTP.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request validation.
"""
