"""ASGI entry point: ``uvicorn opsdesk.api.app:app``."""

from .factory import create_app

app = create_app()
