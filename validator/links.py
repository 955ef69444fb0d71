"""Child-link resolution for link-structured block formats."""

import json
from typing import Callable, Dict, List, Optional, Tuple

from blockstore.cid import ContentIdentifier, IdentifierDefect, decode
from blockstore.encoding import decode_varint
from common.constants import CODEC_DAG_JSON, CODEC_DAG_PB, CODEC_RAW
from common.exceptions import LinkDecodeError

LinkDecoder = Callable[[bytes], List[ContentIdentifier]]

WIRE_VARINT = 0
WIRE_LENGTH_DELIMITED = 2


def _read_field(data: bytes, offset: int) -> Tuple[int, int, object, int]:
    """
    Read one protobuf field.

    Returns:
        Tuple of (field number, wire type, value, next offset); value is an
        int for varints and bytes for length-delimited fields

    Raises:
        ValueError: On truncated data or unsupported wire types
    """
    key, offset = decode_varint(data, offset)
    field_number, wire_type = key >> 3, key & 0x07
    if wire_type == WIRE_VARINT:
        value, offset = decode_varint(data, offset)
        return field_number, wire_type, value, offset
    if wire_type == WIRE_LENGTH_DELIMITED:
        length, offset = decode_varint(data, offset)
        end = offset + length
        if end > len(data):
            raise ValueError("length-delimited field truncated")
        return field_number, wire_type, data[offset:end], end
    raise ValueError(f"unsupported protobuf wire type {wire_type}")


def _decode_pb_link(data: bytes) -> ContentIdentifier:
    link_hash: Optional[bytes] = None
    offset = 0
    while offset < len(data):
        field_number, wire_type, value, offset = _read_field(data, offset)
        if field_number == 1 and wire_type == WIRE_LENGTH_DELIMITED:
            link_hash = value
        elif field_number == 2 and wire_type == WIRE_LENGTH_DELIMITED:
            continue
        elif field_number == 3 and wire_type == WIRE_VARINT:
            continue
        else:
            raise ValueError(f"unexpected PBLink field {field_number}")
    if link_hash is None:
        raise ValueError("PBLink has no Hash")
    return ContentIdentifier.from_bytes(link_hash)


def decode_dag_pb_links(data: bytes) -> List[ContentIdentifier]:
    """
    Extract child identifiers from a dag-pb PBNode, in link order.

    Raises:
        LinkDecodeError: If data is not a dag-pb node
    """
    links = []
    offset = 0
    try:
        while offset < len(data):
            field_number, wire_type, value, offset = _read_field(data, offset)
            if wire_type != WIRE_LENGTH_DELIMITED or field_number not in (1, 2):
                raise ValueError(f"unexpected PBNode field {field_number}")
            if field_number == 2:
                links.append(_decode_pb_link(value))
    except ValueError as e:
        raise LinkDecodeError(f"not a dag-pb node: {e}") from e
    return links


def _collect_json_links(node, links: List[ContentIdentifier]) -> None:
    if isinstance(node, dict):
        if len(node) == 1 and isinstance(node.get("/"), str):
            outcome = decode(node["/"])
            if isinstance(outcome, IdentifierDefect):
                raise LinkDecodeError(f"bad dag-json link {outcome.original!r}: {outcome.reason}")
            links.append(outcome)
            return
        for key in sorted(node):
            _collect_json_links(node[key], links)
    elif isinstance(node, list):
        for item in node:
            _collect_json_links(item, links)


def decode_dag_json_links(data: bytes) -> List[ContentIdentifier]:
    """
    Extract {"/": "<cid>"} link objects from a dag-json document, depth-first.

    Raises:
        LinkDecodeError: If data is not JSON or holds a malformed link
    """
    try:
        document = json.loads(data)
    except (ValueError, RecursionError) as e:
        raise LinkDecodeError(f"not a dag-json document: {e}") from e
    links: List[ContentIdentifier] = []
    try:
        _collect_json_links(document, links)
    except RecursionError as e:
        raise LinkDecodeError("dag-json document nested too deeply") from e
    return links


def no_links(data: bytes) -> List[ContentIdentifier]:
    return []


class LinkResolver:
    """
    Maps a block's codec to a decoder that lists its children.

    Codecs without a registered decoder are leaves.
    """

    def __init__(self):
        self._decoders: Dict[int, LinkDecoder] = {
            CODEC_DAG_PB: decode_dag_pb_links,
            CODEC_DAG_JSON: decode_dag_json_links,
            CODEC_RAW: no_links,
        }

    def register(self, codec: int, decoder: LinkDecoder) -> None:
        """
        Register (or replace) the link decoder for a codec.

        Args:
            codec: Multicodec code
            decoder: Callable returning child identifiers for a payload
        """
        self._decoders[codec] = decoder

    def is_leaf_codec(self, codec: int) -> bool:
        """True if blocks of this codec never carry links (no fetch needed)."""
        return self._decoders.get(codec, no_links) is no_links

    def resolve(self, cid: ContentIdentifier, data: bytes) -> List[ContentIdentifier]:
        """
        List the children of a fetched block.

        Args:
            cid: Identifier the block was fetched under (selects the codec)
            data: Block payload

        Returns:
            Child identifiers in declaration order (empty for leaves)

        Raises:
            LinkDecodeError: If the payload does not decode under its codec,
                including any error raised by a registered decoder
        """
        decoder = self._decoders.get(cid.codec, no_links)
        try:
            return decoder(data)
        except LinkDecodeError:
            raise
        except Exception as e:
            raise LinkDecodeError(f"link decoder failed for {cid}: {e!r}") from e
