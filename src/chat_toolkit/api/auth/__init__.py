from chat_toolkit.api.auth.base import AuthProvider
from chat_toolkit.api.auth.id_token import IdentityVerifier, IdTokenAuthProvider, InvalidTokenError, StaticTokenVerifier

__all__ = ["AuthProvider", "IdTokenAuthProvider", "IdentityVerifier", "InvalidTokenError", "StaticTokenVerifier"]
