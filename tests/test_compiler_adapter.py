"""Tests for the dependency-resolving compiler adapter."""

import asyncio
import json

from fakes import OZ, FakeRegistry, RecordingCompiler
from solbundle.compiler.adapter import DependencyResolvingCompiler, resolution_diagnostic
from solbundle.compiler.base import CompilationResult, CompilerDiagnostic
from solbundle.constants import Constants
from solbundle.errors import ResolutionError
from solbundle.workspace import LocalWorkspace, MemoryWorkspace

TARGET = "contracts/Token.sol"
SOURCE = f'import "{OZ}@4.8.3/token/ERC20/ERC20.sol";\ncontract Token is ERC20 {{}}\n'
ERC20 = f".deps/npm/{OZ}@4.8.3/token/ERC20/ERC20.sol"


def _adapter(ws=None, registry=None, compiler=None):
    return DependencyResolvingCompiler(
        compiler or RecordingCompiler(),
        ws if ws is not None else MemoryWorkspace(),
        registry or FakeRegistry(),
    )


class TestCompile:
    """Test DependencyResolvingCompiler.compile."""

    def test_success_forwards_bundle_and_context(self):
        compiler = RecordingCompiler()
        adapter = _adapter(compiler=compiler)

        outcome = asyncio.run(adapter.compile({TARGET: SOURCE}, TARGET))

        assert outcome.success and not outcome.superseded
        sources, entry, context = compiler.calls[0]
        assert entry == TARGET
        assert sources[TARGET] == SOURCE
        assert ERC20 in sources
        assert context is outcome.context
        assert context.bundle == sources

    def test_entry_read_from_workspace_when_not_supplied(self):
        ws = MemoryWorkspace({TARGET: SOURCE})
        compiler = RecordingCompiler()

        outcome = asyncio.run(_adapter(ws=ws, compiler=compiler).compile({}, TARGET))

        assert outcome.success
        assert compiler.calls[0][0][TARGET] == SOURCE

    def test_resolution_failure_yields_error_diagnostic(self):
        compiler = RecordingCompiler()
        adapter = _adapter(compiler=compiler)

        outcome = asyncio.run(adapter.compile({TARGET: 'import "missing-pkg/src/X.sol";'}, TARGET))

        assert not outcome.success
        assert compiler.calls == []
        diagnostic = outcome.diagnostics[0]
        assert diagnostic.severity == "error"
        assert diagnostic.type == "ResolutionError"
        assert "missing-pkg" in diagnostic.formatted_message
        assert diagnostic.to_dict()["sourceLocation"]["file"] == TARGET

    def test_no_dependency_target_forwarded_unchanged(self):
        registry = FakeRegistry()
        compiler = RecordingCompiler()
        sources = {"object.yul": 'import "x/y.sol";', "other.sol": "contract X {}"}

        outcome = asyncio.run(_adapter(registry=registry, compiler=compiler).compile(sources, "object.yul"))

        assert outcome.success
        assert compiler.calls[0][0] == sources
        assert registry.version_calls == [] and registry.file_calls == []

    def test_compiler_diagnostic_result(self):
        diagnostic = CompilerDiagnostic(severity="error", message="boom", formatted_message="Error: boom")
        outcome = asyncio.run(_adapter(compiler=RecordingCompiler(diagnostic)).compile({TARGET: SOURCE}, TARGET))

        assert not outcome.success
        assert outcome.result is None
        assert outcome.diagnostics == [diagnostic]

    def test_compiler_failure_result(self):
        result = CompilationResult(success=False, diagnostics=[CompilerDiagnostic("error", "x", "Error: x")])
        outcome = asyncio.run(_adapter(compiler=RecordingCompiler(result)).compile({TARGET: SOURCE}, TARGET))

        assert not outcome.success
        assert outcome.result is result

    def test_last_request_wins(self):
        """A newer compile of the same target supersedes the one in flight."""
        ws = MemoryWorkspace()
        compiler = RecordingCompiler()
        adapter = _adapter(ws=ws, registry=FakeRegistry(delay=0.01), compiler=compiler)

        async def run():
            return await asyncio.gather(
                adapter.compile({TARGET: SOURCE}, TARGET),
                adapter.compile({TARGET: SOURCE}, TARGET),
            )

        first, second = asyncio.run(run())

        assert first.superseded and not first.success
        assert second.success and second.generation == first.generation + 1
        assert len(compiler.calls) == 1
        assert json.loads(ws.files[Constants.RESOLUTION_INDEX_FILE])[TARGET] == {
            f"{OZ}@4.8.3/token/ERC20/ERC20.sol": ERC20
        }

    def test_different_targets_do_not_supersede(self):
        compiler = RecordingCompiler()
        adapter = _adapter(registry=FakeRegistry(delay=0.01), compiler=compiler)

        async def run():
            return await asyncio.gather(
                adapter.compile({"a.sol": SOURCE}, "a.sol"),
                adapter.compile({"b.sol": SOURCE}, "b.sol"),
            )

        first, second = asyncio.run(run())

        assert first.success and second.success
        assert len(compiler.calls) == 2

    def test_bundle_snapshot(self, monkeypatch):
        monkeypatch.setattr(Constants, "WRITE_BUNDLE_SNAPSHOT", True)
        ws = MemoryWorkspace()

        asyncio.run(_adapter(ws=ws).compile({TARGET: SOURCE}, TARGET))

        snapshot = json.loads(ws.files[".deps/.bundles/contracts_Token.sol.json"])
        assert snapshot["target"] == TARGET
        assert ERC20 in snapshot["sources"]


class TestNavigationAndWorkspaceChange:
    """Index-backed navigation and workspace switching."""

    def test_navigate(self):
        adapter = _adapter()

        async def run():
            await adapter.compile({TARGET: SOURCE}, TARGET)
            by_file = await adapter.navigate(TARGET, f"{OZ}@4.8.3/token/ERC20/ERC20.sol")
            from_library = await adapter.navigate(None, "./IERC20.sol")
            missing = await adapter.navigate(TARGET, "nope.sol")
            return by_file, from_library, missing

        by_file, from_library, missing = asyncio.run(run())

        assert by_file == ERC20
        assert from_library == f".deps/npm/{OZ}@4.8.3/token/ERC20/IERC20.sol"
        assert missing is None

    def test_on_workspace_changed(self):
        ws = MemoryWorkspace()
        registry = FakeRegistry()
        adapter = _adapter(ws=ws, registry=registry)

        async def run():
            await adapter.compile({TARGET: SOURCE}, TARGET)
            ws.files[Constants.RESOLUTION_INDEX_FILE] = json.dumps({"x.sol": {"a": "b"}})
            await adapter.on_workspace_changed()
            await adapter.compile({TARGET: SOURCE}, TARGET)

        asyncio.run(run())

        assert registry.file_calls == [(OZ, "4.8.3"), (OZ, "4.8.3")]
        assert adapter.index.lookup("x.sol", "a") == "b"

    def test_workspace_change_supersedes_compile_in_flight(self):
        ws = MemoryWorkspace()
        compiler = RecordingCompiler()
        adapter = _adapter(ws=ws, registry=FakeRegistry(delay=0.05), compiler=compiler)

        async def run():
            pending = asyncio.ensure_future(adapter.compile({TARGET: SOURCE}, TARGET))
            await asyncio.sleep(0.01)
            await adapter.on_workspace_changed()
            return await pending

        outcome = asyncio.run(run())

        assert outcome.superseded and not outcome.success
        assert compiler.calls == []
        assert adapter.index.snapshot() == {}
        assert Constants.RESOLUTION_INDEX_FILE not in ws.files

    def test_compile_after_workspace_change_is_current(self):
        adapter = _adapter()

        async def run():
            await adapter.on_workspace_changed()
            return await adapter.compile({TARGET: SOURCE}, TARGET)

        outcome = asyncio.run(run())

        assert outcome.success and not outcome.superseded

    def test_local_workspace_end_to_end(self, tmp_path):
        (tmp_path / "contracts").mkdir()
        (tmp_path / "contracts" / "Token.sol").write_text(SOURCE, encoding="utf-8")
        (tmp_path / "package.json").write_text(json.dumps({"dependencies": {OZ: "4.8.3"}}), encoding="utf-8")
        ws = LocalWorkspace(tmp_path)

        outcome = asyncio.run(_adapter(ws=ws).compile({}, TARGET))

        assert outcome.success
        assert (tmp_path / ERC20).read_text(encoding="utf-8").startswith('import "./IERC20.sol";')
        assert (tmp_path / Constants.RESOLUTION_INDEX_FILE).is_file()


class TestResolutionDiagnostic:
    def test_shape(self):
        diagnostic = resolution_diagnostic(TARGET, ResolutionError("no version for pkg"))

        data = diagnostic.to_dict()
        assert data["severity"] == "error"
        assert data["type"] == "ResolutionError"
        assert "no version for pkg" in data["formattedMessage"]
