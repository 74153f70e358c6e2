"""Crate version models and selection."""
