"""
Serving — FastAPI application and KServe runtime for the chat assistant.

This module exposes ingestion and chat over HTTP so the service can be
deployed as a standalone container or a KServe InferenceService.
"""
