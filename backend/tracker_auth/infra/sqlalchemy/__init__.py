"""SQLAlchemy-backed adapters."""
