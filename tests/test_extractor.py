"""Tests for restoring imported DAGs to files."""

import asyncio

import pytest

from blockstore.cid import compute_cid
from blockstore.dag_builder import import_bytes
from common.constants import CODEC_RAW, PROGRESS_UPDATE_THRESHOLD
from common.exceptions import (
    BlockNotFoundError,
    ExtractionError,
    InvalidIdentifierError,
    PathExistsError,
    PathTraversalError,
    UnsupportedLayoutError,
    ValidationCancelledError,
)
from validator.context import ValidationContext
from validator.extractor import DAGExtractor, ProgressTracker, ensure_no_symlink_in_path, is_sub_path


@pytest.fixture
def payload():
    return bytes(range(256)) * 40


class SlowStore:
    """Wraps a store and stalls reads of raw leaves."""

    def __init__(self, store):
        self.store = store

    async def get_size(self, cid):
        return await self.store.get_size(cid)

    async def get(self, cid):
        if cid.codec == CODEC_RAW:
            await asyncio.sleep(30)
        return await self.store.get(cid)


class TestExtract:
    """Test DAGExtractor.extract."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size,max_links", [(1000, 174), (100, 4), (20000, 174)])
    async def test_round_trip(self, memory_store, tmp_path, payload, chunk_size, max_links):
        imported = await import_bytes(memory_store, payload, chunk_size=chunk_size, max_links=max_links)
        target = tmp_path / 'out' / 'payload.bin'

        written = await DAGExtractor(memory_store, str(imported.root), target).extract()

        assert written == len(payload)
        assert target.read_bytes() == payload
        assert not (tmp_path / 'out' / 'payload.bin.part').exists()

    @pytest.mark.asyncio
    async def test_empty_payload(self, memory_store, tmp_path):
        imported = await import_bytes(memory_store, b"")
        target = tmp_path / 'empty.bin'

        assert await DAGExtractor(memory_store, str(imported.root), target).extract() == 0
        assert target.read_bytes() == b""

    @pytest.mark.asyncio
    async def test_flatfs_store(self, flatfs_store, tmp_path, sample_file):
        data = sample_file.read_bytes()
        imported = await import_bytes(flatfs_store, data, chunk_size=512)
        target = tmp_path / 'restored.bin'

        await DAGExtractor(flatfs_store, str(imported.root), target).extract()

        assert target.read_bytes() == data

    @pytest.mark.asyncio
    async def test_progress_reports(self, memory_store, tmp_path):
        data = b"p" * (PROGRESS_UPDATE_THRESHOLD * 2 + 10)
        imported = await import_bytes(memory_store, data, chunk_size=64 * 1024)
        calls = []

        extractor = DAGExtractor(memory_store, str(imported.root), tmp_path / 'big.bin')
        await extractor.with_progress(lambda done, total, name: calls.append((done, total, name))).extract()

        assert calls[-1] == (len(data), len(data), 'big.bin')
        assert [done for done, _, _ in calls] == sorted(done for done, _, _ in calls)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_missing_leaf_leaves_no_file(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload, chunk_size=1000)
        await memory_store.delete(compute_cid(payload[1000:2000], version=1, codec="raw"))
        target = tmp_path / 'partial.bin'

        with pytest.raises(BlockNotFoundError):
            await DAGExtractor(memory_store, str(imported.root), target).extract()

        assert not target.exists()
        assert not list(tmp_path.glob('*.part'))

    @pytest.mark.asyncio
    async def test_cancelled_extraction_removes_part_file(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload, chunk_size=1000)
        target = tmp_path / 'slow.bin'
        extractor = DAGExtractor(SlowStore(memory_store), str(imported.root), target)

        with pytest.raises(ValidationCancelledError):
            await extractor.extract(ValidationContext(timeout=0.1))

        assert not target.exists()
        assert not list(tmp_path.glob('*.part'))

    @pytest.mark.asyncio
    async def test_invalid_root(self, memory_store, tmp_path):
        with pytest.raises(InvalidIdentifierError):
            await DAGExtractor(memory_store, "not-a-valid-id", tmp_path / 'x').extract()

    @pytest.mark.asyncio
    async def test_unsupported_codec(self, memory_store, tmp_path):
        root = await memory_store.put(b'{"a": 1}', version=1, codec="dag-json")

        with pytest.raises(UnsupportedLayoutError, match="not part of a file layout"):
            await DAGExtractor(memory_store, str(root), tmp_path / 'x').extract()

    @pytest.mark.asyncio
    async def test_undecodable_node(self, memory_store, tmp_path):
        root = await memory_store.put(b"\xff\xff", version=0, codec="dag-pb")

        with pytest.raises(UnsupportedLayoutError):
            await DAGExtractor(memory_store, str(root), tmp_path / 'x').extract()


class TestExistingTargets:
    """Test overwrite handling."""

    @pytest.mark.asyncio
    async def test_existing_file_without_overwrite(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        target = tmp_path / 'taken.bin'
        target.write_bytes(b"keep me")

        with pytest.raises(PathExistsError):
            await DAGExtractor(memory_store, str(imported.root), target).extract()

        assert target.read_bytes() == b"keep me"

    @pytest.mark.asyncio
    async def test_overwrite_replaces_file(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        target = tmp_path / 'taken.bin'
        target.write_bytes(b"stale")

        await DAGExtractor(memory_store, str(imported.root), target).extract(overwrite=True)

        assert target.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_overwrite_replaces_directory(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        target = tmp_path / 'was-a-dir'
        (target / 'nested').mkdir(parents=True)

        await DAGExtractor(memory_store, str(imported.root), target).extract(overwrite=True)

        assert target.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_same_size_file_is_skipped(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        target = tmp_path / 'same.bin'
        target.write_bytes(b"x" * len(payload))
        calls = []

        extractor = DAGExtractor(memory_store, str(imported.root), target)
        written = await extractor.with_progress(lambda *args: calls.append(args)).extract(overwrite=True)

        assert written == len(payload)
        assert target.read_bytes() == b"x" * len(payload)
        assert calls == [(len(payload), len(payload), 'same.bin')]


class TestPathSafety:
    """Test path traversal prevention."""

    def test_is_sub_path(self, tmp_path):
        assert is_sub_path(tmp_path / 'a' / 'b', tmp_path)
        assert not is_sub_path(tmp_path, tmp_path)
        assert not is_sub_path(tmp_path.parent / (tmp_path.name + '-sibling'), tmp_path)

    @pytest.mark.asyncio
    async def test_target_outside_base_dir(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        base = tmp_path / 'jail'
        base.mkdir()

        extractor = DAGExtractor(memory_store, str(imported.root), base / '..' / 'escaped.bin', base_dir=base)

        with pytest.raises(PathTraversalError):
            await extractor.extract()
        assert not (tmp_path / 'escaped.bin').exists()

    @pytest.mark.asyncio
    async def test_symlinked_target_rejected(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        outside = tmp_path / 'outside.txt'
        outside.write_bytes(b"do not touch")
        link = tmp_path / 'link.bin'
        link.symlink_to(outside)

        with pytest.raises(PathTraversalError):
            await DAGExtractor(memory_store, str(imported.root), link).extract(overwrite=True)

        assert outside.read_bytes() == b"do not touch"

    def test_symlinked_directory_rejected(self, tmp_path):
        real = tmp_path / 'real'
        real.mkdir()
        (tmp_path / 'base').mkdir()
        (tmp_path / 'base' / 'via').symlink_to(real)

        with pytest.raises(PathTraversalError):
            ensure_no_symlink_in_path(tmp_path / 'base', tmp_path / 'base' / 'via' / 'file.bin')

    def test_missing_components_are_fine(self, tmp_path):
        ensure_no_symlink_in_path(tmp_path, tmp_path / 'new' / 'dir' / 'file.bin')

    @pytest.mark.asyncio
    async def test_write_failure_is_extraction_error(self, memory_store, tmp_path, payload):
        imported = await import_bytes(memory_store, payload)
        blocker = tmp_path / 'blocker'
        blocker.write_bytes(b"a file, not a directory")

        extractor = DAGExtractor(memory_store, str(imported.root), blocker / 'child.bin', base_dir=tmp_path)

        with pytest.raises(ExtractionError, match="failed to write"):
            await extractor.extract()


def test_progress_tracker():
    calls = []
    tracker = ProgressTracker(callback=lambda *args: calls.append(args))
    tracker.set_total(10)

    tracker.update(4, 'f')
    tracker.update(6, 'f')

    assert tracker.completed == 10
    assert tracker.total == 10
    assert calls == [(4, 10, 'f'), (10, 10, 'f')]


def test_absent_root(memory_store, tmp_path):
    root = compute_cid(b"never stored", version=1, codec="raw")

    with pytest.raises(BlockNotFoundError):
        asyncio.run(DAGExtractor(memory_store, str(root), tmp_path / 'x').extract())
