"""Supplier catalog ingestion and per-shop reconciliation service."""
