"""Tests for the persistent resolution index."""

import asyncio
import json

import pytest

from solbundle.constants import Constants
from solbundle.errors import IndexCorruption, WorkspaceIOError
from solbundle.resolver.index import ResolutionIndex, parse_index
from solbundle.workspace import MemoryWorkspace

RESOLVED = ".deps/npm/@openzeppelin/contracts@4.8.3/token/ERC20/ERC20.sol"
LITERAL = "@openzeppelin/contracts/token/ERC20/ERC20.sol"


class CountingWorkspace(MemoryWorkspace):
    """MemoryWorkspace that counts reads and can fail writes."""

    def __init__(self, files=None):
        super().__init__(files)
        self.reads = 0
        self.fail_writes = False

    async def read_file(self, path):
        self.reads += 1
        await asyncio.sleep(0)
        return await super().read_file(path)

    async def write_file(self, path, content):
        if self.fail_writes:
            raise WorkspaceIOError("disk full", path=path)
        await super().write_file(path, content)


class TestResolutionIndex:
    """Test ResolutionIndex."""

    def test_record_and_lookup(self):
        index = ResolutionIndex(MemoryWorkspace())

        index.record_resolution("contracts/Token.sol", LITERAL, RESOLVED)

        assert index.lookup("contracts/Token.sol", LITERAL) == RESOLVED
        assert index.lookup("contracts/Other.sol", LITERAL) is None
        assert index.lookup_any(LITERAL) == RESOLVED
        assert index.lookup_any("missing.sol") is None
        assert index.get_resolutions_for_file("contracts/Token.sol") == {LITERAL: RESOLVED}
        assert index.is_dirty

    def test_identity_mapping_not_stored(self):
        index = ResolutionIndex(MemoryWorkspace())

        index.record_resolution("contracts/Token.sol", "contracts/Lib.sol", "contracts/Lib.sol")

        assert index.snapshot() == {}
        assert not index.is_dirty

    def test_clear_file_resolutions(self):
        index = ResolutionIndex(MemoryWorkspace())
        index.record_resolution("a.sol", LITERAL, RESOLVED)
        index.record_resolution("b.sol", LITERAL, RESOLVED)

        index.clear_file_resolutions("a.sol")

        assert index.snapshot() == {"b.sol": {LITERAL: RESOLVED}}

    def test_save_reload_round_trip(self):
        ws = MemoryWorkspace()
        index = ResolutionIndex(ws)

        async def run():
            await index.load()
            index.record_resolution("contracts/Token.sol", LITERAL, RESOLVED)
            index.record_resolution(RESOLVED, "./IERC20.sol", RESOLVED.replace("ERC20.sol", "IERC20.sol"))
            before = index.snapshot()
            assert await index.save() is True
            await index.reload()
            return before

        before = asyncio.run(run())

        assert index.snapshot() == before
        assert json.loads(ws.files[Constants.RESOLUTION_INDEX_FILE]) == before
        assert not index.is_dirty

    def test_save_is_noop_when_clean(self):
        ws = MemoryWorkspace()
        index = ResolutionIndex(ws)

        assert asyncio.run(index.save()) is False
        assert Constants.RESOLUTION_INDEX_FILE not in ws.files

    def test_corrupt_file_resets_to_empty(self):
        ws = MemoryWorkspace({Constants.RESOLUTION_INDEX_FILE: "{not json"})
        index = ResolutionIndex(ws)

        asyncio.run(index.load())

        assert index.is_loaded
        assert index.snapshot() == {}

    def test_concurrent_loads_share_one_read(self):
        ws = CountingWorkspace({Constants.RESOLUTION_INDEX_FILE: json.dumps({"a.sol": {LITERAL: RESOLVED}})})
        index = ResolutionIndex(ws)

        async def run():
            await asyncio.gather(index.load(), index.load(), index.load())
            await index.load()

        asyncio.run(run())

        assert ws.reads == 1
        assert index.lookup("a.sol", LITERAL) == RESOLVED

    def test_reload_picks_up_changes(self):
        ws = MemoryWorkspace({Constants.RESOLUTION_INDEX_FILE: json.dumps({"a.sol": {LITERAL: RESOLVED}})})
        index = ResolutionIndex(ws)

        async def run():
            await index.load()
            ws.files[Constants.RESOLUTION_INDEX_FILE] = json.dumps({"b.sol": {LITERAL: RESOLVED}})
            await index.load()
            assert index.lookup("a.sol", LITERAL) == RESOLVED
            await index.reload()

        asyncio.run(run())

        assert index.snapshot() == {"b.sol": {LITERAL: RESOLVED}}

    def test_save_failure_is_logged_not_raised(self, caplog):
        ws = CountingWorkspace()
        ws.fail_writes = True
        index = ResolutionIndex(ws)
        index.record_resolution("a.sol", LITERAL, RESOLVED)

        assert asyncio.run(index.save()) is False
        assert index.is_dirty
        assert "Failed to save resolution index" in caplog.text


class TestParseIndex:
    @pytest.mark.parametrize("content", ["[]", '{"a.sol": ["x"]}', '{"a.sol": {"x": 1}}', "nope"])
    def test_rejects_bad_shapes(self, content):
        with pytest.raises(IndexCorruption):
            parse_index(content)
