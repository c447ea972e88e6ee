"""
Adapters for systems outside the gate (downstream token issuance).
"""

from .token_issuer import JWTTokenIssuer, RegistryLoginIssuer, TokenIssuer

__all__ = [
    "JWTTokenIssuer",
    "RegistryLoginIssuer",
    "TokenIssuer",
]
