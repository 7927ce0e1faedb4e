"""Web API for exambank (FastAPI)."""
