"""Database schema management."""
