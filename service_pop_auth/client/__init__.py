"""
PoP client package.

Token producer side of the protocol: builds `{sub, nonce, iat, exp}` claims,
signs them with the client's private key and sends the result as a bearer
credential.
"""

from .issuer import PopTokenIssuer, generate_nonce
from .pop_client import PopClient

__all__ = ["PopClient", "PopTokenIssuer", "generate_nonce"]
