"""HTTP API for wallet holdings, token visibility and tips."""

from pebloq_wallet.api.app import create_app

__all__ = ["create_app"]
