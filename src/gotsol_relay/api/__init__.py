"""HTTP surface of the relay."""
from .app import create_app
from .dependencies import RelayDependencies, get_deps

__all__ = ["create_app", "RelayDependencies", "get_deps"]
