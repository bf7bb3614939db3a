"""
Bearer-token identity resolution.

Routes never look at tokens themselves: they depend on
``get_current_identity``, which hands the credential to whichever
``IdentityVerifier`` the application was started with.  Swapping in a
real identity provider means adding a verifier, nothing else.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import Settings
from app.schemas.identity import Identity

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class InvalidCredentialsError(Exception):
    pass


class IdentityVerifier(ABC):
    """Maps a bearer credential to an Identity or raises InvalidCredentialsError."""

    @abstractmethod
    def verify(self, token: str) -> Identity:
        pass


class DevelopmentIdentityVerifier(IdentityVerifier):
    """Accepts any non-empty token and returns a fixed identity.

    Only suitable for local development.
    """

    def __init__(self, identity: Identity):
        self.identity = identity

    def verify(self, token: str) -> Identity:
        if not token:
            raise InvalidCredentialsError("Empty token")
        return self.identity


class StaticTokenVerifier(IdentityVerifier):
    """Looks tokens up in a fixed token -> identity table."""

    def __init__(self, identities: Dict[str, Identity]):
        self.identities = dict(identities)

    @classmethod
    def from_file(cls, path: str) -> "StaticTokenVerifier":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls({token: Identity(**data) for token, data in raw.items()})

    def verify(self, token: str) -> Identity:
        try:
            return self.identities[token]
        except KeyError:
            raise InvalidCredentialsError("Unknown token")


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    if settings.auth_mode == "static":
        if not settings.auth_tokens_file:
            raise ValueError("AUTH_MODE=static requires AUTH_TOKENS_FILE")
        return StaticTokenVerifier.from_file(settings.auth_tokens_file)
    if settings.auth_mode == "development":
        logger.warning("Development identity verifier enabled: any bearer token is accepted")
        return DevelopmentIdentityVerifier(
            Identity(
                uid=settings.dev_user_uid,
                email=settings.dev_user_email,
                name=settings.dev_user_name,
                picture=settings.dev_user_picture,
            )
        )
    raise ValueError(f"Unknown AUTH_MODE: {settings.auth_mode}")


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """Dependency returning the verifier configured at startup"""
    return request.app.state.identity_verifier


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided"
        )
    try:
        return verifier.verify(credentials.credentials)
    except InvalidCredentialsError as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
