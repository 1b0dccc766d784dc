"""Notice Engine - API Routers"""
from .letters import router as letters_router

__all__ = [
    "letters_router",
]
