"""Shared HTTP and logging helpers."""
