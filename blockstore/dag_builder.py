"""Builds dag-pb DAGs over chunked payloads and writes them to a block store."""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from blockstore.base import BlockStore
from blockstore.cid import ContentIdentifier, compute_cid
from blockstore.encoding import encode_varint
from common.constants import DEFAULT_CHUNK_SIZE, DEFAULT_LINKS_PER_BLOCK
from common.logging_config import get_logger

logger = get_logger(__name__)

Link = Tuple[ContentIdentifier, str, int]


def _length_delimited(field_number: int, payload: bytes) -> bytes:
    return encode_varint((field_number << 3) | 2) + encode_varint(len(payload)) + payload


def encode_pb_link(cid: ContentIdentifier, name: str = "", tsize: int = 0) -> bytes:
    """
    Encode one PBLink message.

    Args:
        cid: Child identifier (Hash)
        name: Link name
        tsize: Cumulative size of the child's sub-DAG

    Returns:
        Serialized PBLink
    """
    out = _length_delimited(1, cid.to_bytes())
    out += _length_delimited(2, name.encode("utf-8"))
    out += encode_varint((3 << 3) | 0) + encode_varint(tsize)
    return out


def encode_dag_pb_node(links: Sequence[Link], data: bytes = b"") -> bytes:
    """
    Encode a PBNode in canonical field order (Links before Data).

    Args:
        links: (cid, name, tsize) tuples in order
        data: Optional node payload

    Returns:
        Serialized PBNode
    """
    out = b"".join(_length_delimited(2, encode_pb_link(*link)) for link in links)
    if data:
        out += _length_delimited(1, data)
    return out


@dataclass(frozen=True)
class ImportedDAG:
    """
    Result of importing a payload.

    Attributes:
        root: Root identifier
        blocks: Canonical identifiers of every block written, sorted
        size: Total bytes written across all blocks
    """
    root: ContentIdentifier
    blocks: Tuple[str, ...]
    size: int


def split_chunks(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[bytes]:
    """Fixed-size splitter; empty input yields one empty chunk."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    if not data:
        return [b""]
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


async def import_bytes(
    store: BlockStore,
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_links: int = DEFAULT_LINKS_PER_BLOCK
) -> ImportedDAG:
    """
    Chunk data into raw leaves and build balanced dag-pb parents above them.

    Args:
        store: Block store to write into
        data: Payload to import
        chunk_size: Leaf size in bytes
        max_links: Maximum children per interior node

    Returns:
        ImportedDAG describing the written blocks
    """
    if max_links < 2:
        raise ValueError("max_links must be at least 2")

    written = {}
    layer: List[Link] = []
    for chunk in split_chunks(data, chunk_size):
        cid = await store.put(chunk, version=1, codec="raw")
        written[str(cid)] = len(chunk)
        layer.append((cid, "", len(chunk)))

    while len(layer) > 1:
        parents: List[Link] = []
        for start in range(0, len(layer), max_links):
            group = layer[start:start + max_links]
            node = encode_dag_pb_node(group)
            cid = await store.put(node, version=0, codec="dag-pb")
            written[str(cid)] = len(node)
            parents.append((cid, "", len(node) + sum(tsize for _, _, tsize in group)))
        layer = parents

    root = layer[0][0]
    logger.info(f"Imported {len(data)} bytes as {len(written)} blocks [root={root}]")
    return ImportedDAG(root=root, blocks=tuple(sorted(written)), size=sum(written.values()))
