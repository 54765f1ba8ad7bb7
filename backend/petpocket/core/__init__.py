# Core package initialization
# Cross-cutting concerns shared by every layer: settings, logging,
# security, encryption and error types.

from . import auth_decorators, cipher, exceptions, security

__all__ = [
    "auth_decorators",
    "cipher",
    "exceptions",
    "security",
]
