from . import jwt

__all__ = ["jwt"]
