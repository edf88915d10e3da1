"""Catalog ingestion — structured item extraction, proposals and review."""
