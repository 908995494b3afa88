"""
Ingestion — text extraction, chunking, embedding and persistence.

This package converts an uploaded PDF or DOCX into embedded chunks held
by a document store.  :class:`IngestionPipeline` is the entry point.
"""
