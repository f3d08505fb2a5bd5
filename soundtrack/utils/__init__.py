"""Shared helpers: logging setup, correlation ids."""
