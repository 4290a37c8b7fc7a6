from .container import Container
from .wiring import wire_packages

__all__ = ["Container", "wire_packages"]
