"""Data models for the storefront API.

This package contains the SQLAlchemy table definitions used for DDL and
the Pydantic models used for rows, request bodies and responses.
"""
