"""Telemetry ingestion and automation-dispatch engine."""
