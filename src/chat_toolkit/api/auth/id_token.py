"""
Bearer ID-token authentication.

The identity provider (Firebase Auth, an OIDC issuer, ...) is external: an
'IdentityVerifier' turns a raw ID token into the verified user id or raises
'InvalidTokenError'. 'StaticTokenVerifier' maps fixed tokens to user ids and
is meant for local development and tests.
"""

from abc import ABC, abstractmethod

from fastapi import FastAPI, HTTPException, Request, status
from loguru import logger

from chat_toolkit.api.auth.base import AuthProvider


class InvalidTokenError(Exception):
    pass


class IdentityVerifier(ABC):
    @abstractmethod
    def verify(self, token: str) -> str:
        """Return the user id the token was issued to, or raise 'InvalidTokenError'."""
        pass


class StaticTokenVerifier(IdentityVerifier):
    def __init__(self, tokens: dict[str, str]):
        self.tokens = tokens

    def verify(self, token: str) -> str:
        try:
            return self.tokens[token]
        except KeyError:
            raise InvalidTokenError("Unknown token") from None


class IdTokenAuthProvider(AuthProvider):
    """Reads 'Authorization: Bearer <id token>' and verifies it with 'verifier'."""

    def __init__(self, verifier: IdentityVerifier):
        self.verifier = verifier

    def get_current_user_id(self, request: Request) -> str:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        try:
            return self.verifier.verify(token.strip())
        except InvalidTokenError as exc:
            logger.info(f"Rejected ID token: {exc}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc

    def bind_to_app(self, app: FastAPI) -> None:
        def whoami(request: Request) -> dict[str, str]:
            return {"uid": self.get_current_user_id(request)}

        app.add_api_route("/auth/me", whoami, methods=["GET"])
