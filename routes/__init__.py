# Routes package __init__.py - re-exports routers for main.py convenience
from .history import router as history_router
from .rooms import router as rooms_router

__all__ = ['history_router', 'rooms_router']
