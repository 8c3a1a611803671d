"""Ingestion pipeline — source dispatch, document parsing, field extraction."""
