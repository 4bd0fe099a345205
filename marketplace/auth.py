# marketplace/auth.py
"""Caller identity.

Credentials are verified upstream; this module only consumes the result. The
resolver is pluggable so a deployment can swap in whatever its session
service hands over.
"""
from typing import Callable, Optional

from fastapi import Request
from pydantic import BaseModel

from .errors import UnauthenticatedError


class Identity(BaseModel):
    id: str
    email: str
    username: str


IdentityResolver = Callable[[Request], Optional[Identity]]


def forwarded_header_resolver(request: Request) -> Optional[Identity]:
    """Read the identity a trusted gateway forwarded after verifying the bearer token."""
    user_id = request.headers.get("x-user-id")
    if not user_id:
        return None
    return Identity(
        id=user_id,
        email=request.headers.get("x-user-email", ""),
        username=request.headers.get("x-user-name", ""),
    )


def current_identity(request: Request) -> Identity:
    resolver: IdentityResolver = request.app.state.identity_resolver
    identity = resolver(request)
    if identity is None:
        raise UnauthenticatedError()
    return identity
