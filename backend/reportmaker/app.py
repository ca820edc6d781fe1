"""FastAPI application entrypoint.

This module imports the application factory from main.py and creates the app
instance used by ASGI servers (uvicorn, gunicorn, etc.).

Usage:
    uvicorn reportmaker.app:app --reload
"""
from reportmaker.main import create_app

app = create_app()
