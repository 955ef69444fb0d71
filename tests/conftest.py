"""Shared pytest fixtures for all tests."""

import pytest

from blockstore.dag_builder import encode_dag_pb_node
from blockstore.flatfs_store import FlatFSBlockStore
from blockstore.memory_store import MemoryBlockStore


@pytest.fixture
def memory_store():
    """Empty in-memory block store."""
    return MemoryBlockStore()


@pytest.fixture
def flatfs_store(tmp_path):
    """
    Create a flatfs block store in a temporary repository.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        FlatFSBlockStore rooted at <tmp_path>/repo
    """
    return FlatFSBlockStore(tmp_path / 'repo')


@pytest.fixture
def put_leaf():
    """
    Store a raw leaf block.

    Returns:
        Coroutine function (store, data) -> CIDv1 raw identifier
    """
    async def _put_leaf(store, data: bytes):
        return await store.put(data, version=1, codec="raw")
    return _put_leaf


@pytest.fixture
def put_node():
    """
    Store a dag-pb node linking to the given children.

    Returns:
        Coroutine function (store, children, data=b"") -> CIDv0 identifier
    """
    async def _put_node(store, children, data: bytes = b""):
        links = [(child, f"link-{index}", 0) for index, child in enumerate(children)]
        node = encode_dag_pb_node(links, data)
        return await store.put(node, version=0, codec="dag-pb")
    return _put_node


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample payload file spanning several chunks.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the sample file
    """
    file_path = tmp_path / 'payload.bin'
    file_path.write_bytes(b"".join(i.to_bytes(4, "big") for i in range(1000)))
    return file_path
