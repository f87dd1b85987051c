"""
Authentication provider abstractions.

An 'AuthProvider' integrates with a FastAPI application to identify the caller
of every remote procedure. The resolved user id is handed to 'ChatController',
which refuses to run any operation without one.

'IdTokenAuthProvider' verifies bearer ID tokens through a pluggable
'IdentityVerifier'.
"""

from abc import ABC, abstractmethod
from fastapi import Request, FastAPI


class AuthProvider(ABC):
    """
    Abstract base class for authentication backends.

    Implementors must supply a FastAPI dependency that resolves to the current
    user ID ('get_current_user_id') and a setup hook that registers all required
    routes and middleware with the application ('bind_to_app').
    """

    @abstractmethod
    def get_current_user_id(self, request: Request) -> str:
        """FastAPI dependency that returns the verified caller's user ID.

        Raise 'HTTPException' with status 401 if the request is not authenticated.
        """
        pass

    @abstractmethod
    def bind_to_app(self, app: FastAPI) -> None:
        """Register routes and middleware required by this provider."""
        pass
