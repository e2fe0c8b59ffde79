"""Music Relay — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and request normalization.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
input_normalizer
    Resolution of the two ``/generate`` body shapes into one generation input.
"""
