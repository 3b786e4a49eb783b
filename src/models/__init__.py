"""
Models Module - Data Models and Type Definitions
=================================================

Pydantic v2 models for request bodies, pipeline messages, stream events and
API responses.

Modules:
    agent_models: Messages, usage, model selection, provider settings, file map
    event_models: Progress, prompt comparison, usage and code context events
    error_models: ErrorCode enum and the request-level ErrorResponse body
    schemas: Response models for the health and debug endpoints

Wire format:
    Models exchanged with the browser use camelCase aliases (``CamelModel``)
    and accept snake_case on input. Dump with ``by_alias=True`` before
    writing them to the stream.

Example:
    Emitting a progress event::

        from models.event_models import create_progress_annotation

        sink.write_data(create_progress_annotation("enhance", "Enhancing prompt...", "in-progress", 1))
"""
