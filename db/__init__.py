"""Database schema and models."""
