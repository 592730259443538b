"""
authserver - an authorization backend.

Authenticates users by secret, resolves their resource/role grants and
issues short-lived bearer tokens.
"""

__version__ = "0.1.0"
