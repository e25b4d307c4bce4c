"""GreenRelay - IoT relay-control backend"""

from .core import RelayServer

__all__ = ['RelayServer']
