"""Service locator for the block store and validator shared by routes."""

from typing import Optional

from blockstore.base import BlockStore
from validator.validator import Validator

_block_store: Optional[BlockStore] = None
_validator: Optional[Validator] = None


def set_block_store(store: BlockStore, concurrency: Optional[int] = None):
    """Set global block store and build a validator over it"""
    global _block_store, _validator
    _block_store = store
    _validator = Validator(store, concurrency=concurrency)


def get_block_store() -> Optional[BlockStore]:
    """Get global block store instance"""
    return _block_store


def get_validator() -> Optional[Validator]:
    """Get global validator instance"""
    return _validator


def reset():
    """Forget the configured store and validator"""
    global _block_store, _validator
    _block_store = None
    _validator = None
