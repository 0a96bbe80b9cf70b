"""Spreadsheet ingestion."""
