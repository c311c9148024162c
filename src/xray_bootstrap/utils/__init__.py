"""Shared helpers for xray-bootstrap (file handling, logging formatters)."""
