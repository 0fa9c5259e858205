"""Hoho -- chat interaction relay with deferred AI answers.

Usage::

    from hoho.relay.app import create_app
    from hoho.protocol import SignatureVerifier, InteractionRequest
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
