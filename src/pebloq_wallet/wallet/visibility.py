"""Visibility rules applied to resolved holdings.

These are pure functions over lower-cased keys: applying them twice, or in
any order, yields the same result, and they never touch persisted state.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from pebloq_wallet.wallet.models import NFTCollection, TokenBalance, VisibilityRules

COLLECTION_KEY_SUFFIX = "collection"


def collection_hide_key(contract_address: str) -> str:
    return f"{contract_address.lower()}:{COLLECTION_KEY_SUFFIX}"


def is_token_visible(token: TokenBalance, rules: VisibilityRules) -> bool:
    address = token.contract_address.lower()
    return address not in rules.blacklisted_tokens and address not in rules.hidden_tokens


def filter_tokens(tokens: Iterable[TokenBalance], rules: VisibilityRules) -> list[TokenBalance]:
    return [t for t in tokens if is_token_visible(t, rules)]


def filter_collections(collections: Iterable[NFTCollection], rules: VisibilityRules) -> list[NFTCollection]:
    """Drop blacklisted or hidden collections and individually hidden NFTs.

    Collections left without NFTs are dropped as well.
    """
    visible: list[NFTCollection] = []
    for collection in collections:
        address = collection.contract_address.lower()
        if address in rules.blacklisted_collections or collection.is_blacklisted:
            continue
        if collection_hide_key(address) in rules.hidden_nfts:
            continue
        nfts = tuple(n for n in collection.nfts if n.hide_key not in rules.hidden_nfts)
        if not nfts:
            continue
        visible.append(collection if len(nfts) == len(collection.nfts) else replace(collection, nfts=nfts))
    return visible
