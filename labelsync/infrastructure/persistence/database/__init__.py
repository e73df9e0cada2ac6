"""Database engine, session handling and ORM models."""
