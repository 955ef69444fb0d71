"""Tests for CLI parsing, command handlers and exit codes."""

import asyncio
import json

import pytest

from blockstore.cid import compute_cid
from blockstore.dag_builder import encode_dag_pb_node
from blockstore.memory_store import MemoryBlockStore
from cli.commands import handle_extract, handle_import, handle_usage, handle_validate
from cli.constants import EXIT_COMPLETE, EXIT_INCOMPLETE, EXIT_USAGE_ERROR
from cli.main import main, run
from cli.models import ExtractCommand, ImportCommand, UsageCommand, ValidateCommand
from cli.parser import ParseError, parse_command
from cli.utils import format_file_size, format_report
from common.exceptions import ContractViolationError
from validator.result import ValidationResult


class TestParser:
    """Test command parsing."""

    def test_validate_minimal(self):
        cmd = parse_command(['validate', 'QmRoot'])

        assert cmd == ValidateCommand(root='QmRoot', blocks=())

    def test_validate_with_options(self):
        cmd = parse_command([
            'validate', 'QmRoot', 'QmA', '--repo', '/tmp/repo', 'QmB',
            '--timeout', '2.5', '--concurrency', '8', '--json', '--hash-on-read'
        ])

        assert cmd.root == 'QmRoot'
        assert cmd.blocks == ('QmA', 'QmB')
        assert cmd.repo == '/tmp/repo'
        assert cmd.timeout == 2.5
        assert cmd.concurrency == 8
        assert cmd.as_json is True
        assert cmd.hash_on_read is True

    def test_usage(self):
        assert parse_command(['usage', '--repo', 'r', '--json']) == UsageCommand(repo='r', as_json=True)

    def test_import(self):
        cmd = parse_command(['import', 'file.bin', '--chunk-size', '4096'])

        assert cmd == ImportCommand(path='file.bin', chunk_size=4096)

    def test_extract(self):
        cmd = parse_command(['extract', 'QmRoot', 'out.bin', '--overwrite', '--timeout', '5'])

        assert cmd == ExtractCommand(root='QmRoot', path='out.bin', timeout=5.0, overwrite=True)

    @pytest.mark.parametrize("tokens,message", [
        ([], "Empty command"),
        (['frobnicate'], "Unknown command"),
        (['validate'], "requires a root"),
        (['validate', 'QmRoot', '--timeout'], "requires a value"),
        (['validate', 'QmRoot', '--timeout', 'soon'], "must be a number"),
        (['validate', 'QmRoot', '--concurrency', '0'], "must be positive"),
        (['validate', 'QmRoot', '--chunk-size', '10'], "does not accept"),
        (['validate', 'QmRoot', '--verbose'], "Unknown option"),
        (['usage', 'extra'], "no positional"),
        (['usage', '--timeout', '1'], "only accepts"),
        (['import'], "exactly one file"),
        (['import', 'a', 'b'], "exactly one file"),
        (['import', 'a', '--hash-on-read'], "only accepts"),
        (['extract', 'QmRoot'], "root CID and an output path"),
        (['extract', 'QmRoot', 'out.bin', '--chunk-size', '4'], "only accepts"),
        (['validate', 'QmRoot', '--overwrite'], "does not accept --overwrite"),
        (['usage', '--overwrite'], "only accepts"),
    ])
    def test_parse_errors(self, tokens, message):
        with pytest.raises(ParseError, match=message):
            parse_command(tokens)


class TestFormatting:
    """Test output formatting."""

    def test_format_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(1536) == "1.50 KiB"
        assert format_file_size(3 * 1024 * 1024) == "3.00 MiB"

    def test_format_report_text(self):
        result = ValidationResult()
        result.add_missing("QmMissing")
        result.add_invalid("bad")
        result.add_error("invalid CID: bad")
        result.finalize()

        text = format_report(result.snapshot())

        assert "incomplete" in text
        assert "Missing blocks (1):" in text
        assert "QmMissing" in text
        assert "Invalid blocks (1):" in text
        assert "invalid CID: bad" in text

    def test_format_report_json(self):
        result = ValidationResult()
        result.finalize()

        assert json.loads(format_report(result.snapshot(), as_json=True))['is_complete'] is True


class TestHandlers:
    """Test command handlers with an injected store."""

    def test_handle_validate_complete(self):
        store = MemoryBlockStore()
        root = asyncio.run(store.put(b"root block"))

        output, exit_code = handle_validate(ValidateCommand(root=str(root), blocks=(str(root),)), store=store)

        assert exit_code == EXIT_COMPLETE
        assert "complete" in output

    def test_handle_validate_incomplete_json(self):
        store = MemoryBlockStore()
        root = asyncio.run(store.put(b"root block"))
        stranger = str(compute_cid(b"absent", version=1, codec="raw"))
        cmd = ValidateCommand(root=str(root), blocks=(str(root), stranger), as_json=True)

        output, exit_code = handle_validate(cmd, store=store)

        assert exit_code == EXIT_INCOMPLETE
        assert json.loads(output)['missing_blocks'] == [stranger]

    def test_handle_usage(self):
        store = MemoryBlockStore()
        asyncio.run(store.put(b"x" * 2048))

        output, exit_code = handle_usage(UsageCommand(), store=store)

        assert exit_code == EXIT_COMPLETE
        assert output == "2.00 KiB in 1 blocks"

    def test_handle_import_unreadable_file(self, tmp_path):
        with pytest.raises(ContractViolationError, match="cannot read"):
            handle_import(ImportCommand(path=str(tmp_path / 'missing.bin')), store=MemoryBlockStore())

    def test_handle_import(self, sample_file):
        store = MemoryBlockStore()

        output, exit_code = handle_import(ImportCommand(path=str(sample_file), chunk_size=1000, as_json=True), store=store)

        body = json.loads(output)
        assert exit_code == EXIT_COMPLETE
        assert len(body['blocks']) == 5
        assert store.count() == 5


class TestRun:
    """Test run() end to end against a flatfs repository."""

    def test_import_then_validate(self, tmp_path, sample_file, capsys):
        repo = str(tmp_path / 'repo')

        assert run(['import', str(sample_file), '--repo', repo, '--chunk-size', '500', '--json']) == EXIT_COMPLETE
        imported = json.loads(capsys.readouterr().out)

        exit_code = run(['validate', imported['root'], *imported['blocks'], '--repo', repo, '--json'])
        report = json.loads(capsys.readouterr().out)

        assert exit_code == EXIT_COMPLETE
        assert report['is_complete'] is True
        assert report['reachable_size'] == imported['size']

    def test_validate_incomplete_exit_code(self, tmp_path, sample_file, capsys):
        repo = str(tmp_path / 'repo')
        run(['import', str(sample_file), '--repo', repo, '--chunk-size', '500', '--json'])
        imported = json.loads(capsys.readouterr().out)

        exit_code = run(['validate', imported['root'], '--repo', repo])

        assert exit_code == EXIT_INCOMPLETE
        assert "Missing blocks" in capsys.readouterr().out

    def test_usage_command(self, tmp_path, capsys):
        assert run(['usage', '--repo', str(tmp_path / 'repo'), '--json']) == EXIT_COMPLETE

        assert json.loads(capsys.readouterr().out) == {'bytes': 0, 'blocks': 0}

    def test_invalid_root_exit_code(self, tmp_path, capsys):
        exit_code = run(['validate', 'not-a-valid-id', '--repo', str(tmp_path / 'repo')])

        assert exit_code == EXIT_USAGE_ERROR
        assert "invalid CID" in capsys.readouterr().err

    def test_empty_root_exit_code(self, tmp_path, capsys):
        assert run(['validate', '', '--repo', str(tmp_path / 'repo')]) == EXIT_USAGE_ERROR

    def test_parse_error_prints_usage(self, capsys):
        assert run(['bogus']) == EXIT_USAGE_ERROR

        assert "usage:" in capsys.readouterr().err

    def test_help(self, capsys):
        assert run(['help']) == 0
        assert run([]) == EXIT_USAGE_ERROR

    def test_main_exits_with_run_code(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(['usage', '--repo', str(tmp_path / 'repo')])

        assert exc_info.value.code == EXIT_COMPLETE

    def test_import_then_extract(self, tmp_path, sample_file, capsys):
        repo = str(tmp_path / 'repo')
        run(['import', str(sample_file), '--repo', repo, '--chunk-size', '300', '--json'])
        imported = json.loads(capsys.readouterr().out)
        target = tmp_path / 'restored' / 'payload.bin'

        exit_code = run(['extract', imported['root'], str(target), '--repo', repo, '--json'])

        assert exit_code == EXIT_COMPLETE
        assert json.loads(capsys.readouterr().out)['bytes'] == sample_file.stat().st_size
        assert target.read_bytes() == sample_file.read_bytes()

    def test_extract_existing_target_needs_overwrite(self, tmp_path, sample_file, capsys):
        repo = str(tmp_path / 'repo')
        run(['import', str(sample_file), '--repo', repo, '--json'])
        root = json.loads(capsys.readouterr().out)['root']
        target = tmp_path / 'taken.bin'
        target.write_bytes(b"old")

        assert run(['extract', root, str(target), '--repo', repo]) == EXIT_USAGE_ERROR
        assert "already exists" in capsys.readouterr().err

        assert run(['extract', root, str(target), '--repo', repo, '--overwrite']) == EXIT_COMPLETE
        assert target.read_bytes() == sample_file.read_bytes()


class TestHandleExtract:
    """Test the extract handler with an injected store."""

    def test_missing_block_is_incomplete(self, tmp_path):
        store = MemoryBlockStore()
        first = asyncio.run(store.put(b"first", version=1, codec="raw"))
        absent = compute_cid(b"second", version=1, codec="raw")
        root = asyncio.run(store.put(encode_dag_pb_node([(first, "", 5), (absent, "", 6)])))

        output, exit_code = handle_extract(ExtractCommand(root=str(root), path=str(tmp_path / 'out.bin')), store=store)

        assert exit_code == EXIT_INCOMPLETE
        assert "Cannot restore" in output
        assert not (tmp_path / 'out.bin').exists()

    def test_text_output(self, tmp_path):
        store = MemoryBlockStore()
        root = asyncio.run(store.put(b"x" * 2048, version=1, codec="raw"))

        output, exit_code = handle_extract(ExtractCommand(root=str(root), path=str(tmp_path / 'out.bin')), store=store)

        assert exit_code == EXIT_COMPLETE
        assert output == f"Extracted 2.00 KiB to {tmp_path / 'out.bin'}"
