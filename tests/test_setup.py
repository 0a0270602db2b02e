"""Test that the project setup is working correctly."""

import pebloq_wallet


def test_version() -> None:
    """Test that version is defined."""
    assert pebloq_wallet.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from pebloq_wallet import api
    from pebloq_wallet import chain
    from pebloq_wallet import storage
    from pebloq_wallet import tips
    from pebloq_wallet import wallet

    # Just verify imports work
    assert api is not None
    assert chain is not None
    assert storage is not None
    assert tips is not None
    assert wallet is not None
