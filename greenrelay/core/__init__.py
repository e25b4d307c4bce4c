"""Core module"""

from .server import RelayServer

__all__ = ['RelayServer']
