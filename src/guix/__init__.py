"""Guix package definitions: package descriptions, Scheme rendering and source hashes."""
