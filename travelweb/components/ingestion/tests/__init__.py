"""Ingestion component tests."""
