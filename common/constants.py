"""Project-wide constants (codec tables, walk defaults, flatfs layout)."""

from types import MappingProxyType

# Multicodec codes for the content types a CID can carry.
CODEC_RAW: int = 0x55
CODEC_DAG_PB: int = 0x70
CODEC_DAG_CBOR: int = 0x71
CODEC_DAG_JSON: int = 0x0129
CODEC_LIBP2P_KEY: int = 0x72

CODEC_NAMES = MappingProxyType({
    "raw": CODEC_RAW,
    "dag-pb": CODEC_DAG_PB,
    "dag-cbor": CODEC_DAG_CBOR,
    "dag-json": CODEC_DAG_JSON,
    "libp2p-key": CODEC_LIBP2P_KEY,
})

# Multihash function codes -> digest length in bytes.
HASH_SHA2_256: int = 0x12
HASH_SHA2_512: int = 0x13
HASH_SHA3_256: int = 0x16
HASH_IDENTITY: int = 0x00

HASH_DIGEST_LENGTHS = MappingProxyType({
    HASH_SHA2_256: 32,
    HASH_SHA2_512: 64,
    HASH_SHA3_256: 32,
})

# Identity multihashes inline the data; their length is capped.
MAX_IDENTITY_DIGEST_LENGTH: int = 128

CIDV0_PREFIX: str = "Qm"
CIDV0_LENGTH: int = 46

MULTIBASE_BASE32: str = "b"
MULTIBASE_BASE58BTC: str = "z"

DEFAULT_WALK_CONCURRENCY: int = 32

BLOCK_FILE_EXTENSION: str = ".data"
BLOCKS_DIR_NAME: str = "blocks"
SHARD_SUFFIX_LENGTH: int = 2
WRITABLE_PROBE_NAME: str = "._check_writable"

DEFAULT_REPO_PATH: str = "~/.blockcheck"

DEFAULT_CHUNK_SIZE: int = 1024 * 1024  # 1 MiB leaves
DEFAULT_LINKS_PER_BLOCK: int = 174

PART_FILE_SUFFIX: str = ".part"
PROGRESS_UPDATE_THRESHOLD: int = 256 * 1024  # bytes between progress callbacks
