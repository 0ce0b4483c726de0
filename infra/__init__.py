"""
Infrastructure module exports.

Bootstrap for the gateway's collaborators.
"""

from .bootstrap import GatewayBootstrap, get_bootstrap

__all__ = [
    "GatewayBootstrap",
    "get_bootstrap",
]
