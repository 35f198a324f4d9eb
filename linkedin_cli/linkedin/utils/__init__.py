"""Parsers and lookup utilities for LinkedIn payloads."""
