"""HTTP API (FastAPI). The application lives in ``memehub.api.app``."""
