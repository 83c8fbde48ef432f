"""HTTP application layer (FastAPI)."""
