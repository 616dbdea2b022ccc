"""Tests for fixturegen.orchestrator."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from fixturegen.config import ConfigError, GeneratorConfig, SnapshotConfig
from fixturegen.errors import GenerationError
from fixturegen.orchestrator import Orchestrator
from fixturegen.parsers import InvalidInputError, Parser, PythonParser
from fixturegen.snapshot import serialize


class ExplodingParser(Parser):
    """Python parser that crashes on a marker comment."""

    name = "exploding"
    default_extension = ".py"
    invalid_input_errors = PythonParser.invalid_input_errors

    def __init__(self) -> None:
        self._inner = PythonParser()

    def parse(self, text: str):
        if "# explode" in text:
            raise ZeroDivisionError("parser bug")
        return self._inner.parse(text)


class WordParser(Parser):
    """Minimal parser whose tree is a single node."""

    name = "words"
    default_extension = ".txt"

    def parse(self, text: str):
        if "!" in text:
            raise InvalidInputError("unexpected '!'")
        return {"type": "Program", "words": text.split()}


@pytest.fixture
def registered_parsers(monkeypatch):
    """Expose the test parsers through the fixturegen.parsers entry-point group."""

    class EntryPoints(list):
        def select(self, **kwargs):
            return self if kwargs.get("group") == "fixturegen.parsers" else []

    entries = EntryPoints(
        [
            SimpleNamespace(name="exploding", load=lambda: ExplodingParser),
            SimpleNamespace(name="words", load=lambda: WordParser),
        ]
    )
    monkeypatch.setattr("fixturegen.parsers.metadata.entry_points", lambda: entries)


def _snapshot_files(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("ast.*.json"))
    }


def test_generate_mirrors_scenario(resources) -> None:
    resources.write({"a.py": "x = 1\n", "sub/b.py": "def broken(:\n"})

    result = resources.generate()

    text = resources.module_text()
    assert result.output_path == resources.output.resolve()
    assert result.module_changed is True
    assert (result.parsed, result.failed, result.total) == (1, 1, 2)
    assert (
        "class TestSub:\n"
        "    def test_b(self):\n"
        "        _fails('resources/sub/b.py')\n"
    ) in text
    assert "def test_a():\n    _check('resources/a.py', 'resources/ast.a.json')\n" in text
    assert text.index("class TestSub") < text.index("def test_a")

    snapshot = resources.resources / "ast.a.json"
    assert snapshot.read_text(encoding="utf-8") == serialize(PythonParser().parse("x = 1\n"))
    assert not (resources.resources / "sub" / "ast.b.json").exists()
    assert result.snapshots_written == [snapshot.resolve()]


def test_generate_is_idempotent(resources) -> None:
    resources.write(
        {
            "a.py": "x = {'b': 1, 'a': 2}\n",
            "nested/deeper/c.py": "def f():\n    return 1\n",
            "nested/bad.py": "for\n",
        }
    )
    resources.mkdir("empty")

    resources.generate()
    first_module = resources.output.read_bytes()
    first_snapshots = _snapshot_files(resources.resources)
    second = resources.generate()

    assert resources.output.read_bytes() == first_module
    assert _snapshot_files(resources.resources) == first_snapshots
    assert second.module_changed is False
    assert second.snapshots_written == []


def test_generate_empty_root_emits_preamble_and_trailer_only(resources) -> None:
    result = resources.generate()

    text = resources.module_text()
    assert result.total == 0
    assert "def test_" not in text
    assert "class Test" not in text
    assert text.startswith('"""Parser tests generated by fixturegen')
    assert text.endswith("\n\n# fmt: on\n")
    assert resources.run_module() == {}


def test_generate_creates_missing_directories(tmp_path: Path) -> None:
    resources = tmp_path / "fresh" / "resources"
    output = tmp_path / "fresh" / "out" / "test_generated.py"

    Orchestrator().generate(resources, output)

    assert resources.is_dir()
    assert output.is_file()


def test_generated_module_mirrors_hierarchy(resources) -> None:
    resources.write(
        {
            "top.py": "pass\n",
            "alpha/one.py": "x = 1\n",
            "alpha/beta/two.py": "y = 2\n",
            "gamma-dir/three.py": "z = (\n",
        }
    )
    resources.mkdir("alpha/empty")

    resources.generate()
    module = resources.load_module()

    assert [name for name in vars(module) if name.startswith("Test")] == ["TestAlpha", "TestGamma_dir"]
    alpha_scopes = [name for name in vars(module.TestAlpha) if name.startswith("Test")]
    assert alpha_scopes == ["TestBeta", "TestEmpty"]
    assert [name for name in vars(module.TestAlpha.TestEmpty) if name.startswith("test_")] == []
    assert hasattr(module.TestAlpha, "test_one")
    assert hasattr(module.TestAlpha.TestBeta, "test_two")
    assert hasattr(module.TestGamma_dir, "test_three")
    assert hasattr(module, "test_top")


def test_generated_tests_pass_right_after_generation(resources) -> None:
    resources.write(
        {
            "literal.py": "value = [1, 2.5, 'three', None, b'4', 5j]\n",
            "unicode.py": "名前 = '値'\n",
            "funcs/defs.py": "async def f(*args, **kwargs):\n    await g()\n",
            "funcs/broken.py": "def f(\n",
            "invalid/indent.py": "if True:\npass\n",
        }
    )

    resources.generate()
    outcomes = resources.run_module()

    assert set(outcomes) == {
        "test_literal",
        "test_unicode",
        "TestFuncs::test_broken",
        "TestFuncs::test_defs",
        "TestInvalid::test_indent",
    }
    assert all(error is None for error in outcomes.values()), outcomes


def test_generated_tests_detect_drift(resources) -> None:
    resources.write({"value.py": "x = 1\n", "broken.py": "x = (\n"})
    resources.generate()

    snapshot = resources.resources / "ast.value.json"
    data = json.loads(snapshot.read_text(encoding="utf-8"))
    data["body"][0]["value"]["value"] = 2
    snapshot.write_text(json.dumps(data), encoding="utf-8")
    (resources.resources / "broken.py").write_text("x = ()\n", encoding="utf-8")

    outcomes = resources.run_module()

    assert isinstance(outcomes["test_value"], AssertionError)
    assert "does not match snapshot" in str(outcomes["test_value"])
    assert isinstance(outcomes["test_broken"], AssertionError)


def test_parser_fault_aborts_without_writing(resources, registered_parsers) -> None:
    resources.write({"a.py": "x = 1\n", "b.py": "y = 2  # explode\n"})

    with pytest.raises(GenerationError) as excinfo:
        resources.generate(Orchestrator(parser=ExplodingParser()))

    assert "b.py" in str(excinfo.value)
    assert not resources.output.exists()
    assert _snapshot_files(resources.resources) == {}


def test_fault_keeps_previous_output_intact(resources, registered_parsers) -> None:
    resources.write({"a.py": "x = 1\n"})
    orchestrator = Orchestrator(parser=ExplodingParser())
    resources.generate(orchestrator)
    before_module = resources.output.read_bytes()
    before_snapshots = _snapshot_files(resources.resources)

    resources.write({"a.py": "x = 2\n", "z.py": "# explode\n"})
    with pytest.raises(GenerationError):
        resources.generate(orchestrator)

    assert resources.output.read_bytes() == before_module
    assert _snapshot_files(resources.resources) == before_snapshots


def test_stale_snapshots_are_pruned(resources) -> None:
    resources.write({"a.py": "x = 1\n", "gone.py": "y = 2\n"})
    resources.generate()
    assert (resources.resources / "ast.gone.json").exists()

    (resources.resources / "gone.py").unlink()
    resources.write({"a.py": "x = (\n"})
    result = resources.generate()

    assert _snapshot_files(resources.resources) == {}
    assert sorted(path.name for path in result.snapshots_pruned) == ["ast.a.json", "ast.gone.json"]


def test_stale_snapshots_kept_when_pruning_disabled(resources) -> None:
    resources.write({"gone.py": "y = 2\n"})
    resources.generate()
    (resources.resources / "gone.py").unlink()
    config = GeneratorConfig.defaults(resources.root)
    config.snapshot = SnapshotConfig(prune_stale=False)

    result = resources.generate(Orchestrator(config))

    assert (resources.resources / "ast.gone.json").exists()
    assert result.snapshots_pruned == []


def test_custom_parser_and_extension(resources, registered_parsers) -> None:
    resources.write({"one.txt": "hello world\n", "two.txt": "bang!\n", "ignored.py": "x = 1\n"})
    config = GeneratorConfig.defaults(resources.root)

    result = resources.generate(Orchestrator(config, parser=WordParser()))

    assert (result.parsed, result.failed) == (1, 1)
    snapshot = json.loads((resources.resources / "ast.one.json").read_text(encoding="utf-8"))
    assert snapshot == {"type": "Program", "words": ["hello", "world"]}
    text = resources.module_text()
    assert "_fails('resources/two.txt')" in text
    assert "_PARSER = resolve_parser('words')" in text
    assert "ignored" not in text

    outcomes = resources.run_module()
    assert set(outcomes) == {"test_one", "test_two"}
    assert all(error is None for error in outcomes.values()), outcomes


def test_injected_parser_with_option_keeps_its_spec(resources) -> None:
    resources.write(
        {
            "walrus.py": "if (n := 1):\n    pass\n",
            "match.py": "match x:\n    case 1:\n        pass\n",
        }
    )

    result = resources.generate(Orchestrator(parser=PythonParser("3.8")))

    assert (result.parsed, result.failed) == (1, 1)
    assert "_PARSER = resolve_parser('python:3.8')" in resources.module_text()
    outcomes = resources.run_module()
    assert all(error is None for error in outcomes.values()), outcomes


def test_unregistered_injected_parser_is_rejected(resources) -> None:
    resources.write({"one.txt": "hello\n"})

    with pytest.raises(ConfigError, match="cannot be resolved by name"):
        resources.generate(Orchestrator(parser=WordParser()))

    assert not resources.output.exists()
    assert _snapshot_files(resources.resources) == {}


def test_parser_spec_must_match_injected_parser(resources, registered_parsers) -> None:
    with pytest.raises(ConfigError, match="resolves to PythonParser"):
        resources.generate(Orchestrator(parser=WordParser(), parser_spec="python"))

    assert not resources.output.exists()


def test_snapshot_names_must_not_collide_with_samples(resources) -> None:
    config = GeneratorConfig.defaults(resources.root)
    config.snapshot = SnapshotConfig(prefix="", suffix=".py")

    with pytest.raises(ConfigError):
        resources.generate(Orchestrator(config))


def test_output_inside_resources_is_rejected(resources) -> None:
    with pytest.raises(GenerationError, match="picked up as a sample"):
        Orchestrator().generate(resources.resources, resources.resources / "test_generated.py")


def test_run_reads_project_configuration(resources) -> None:
    (resources.root / ".fixturegen.yml").write_text(
        "resources: samples\noutput: generated/test_samples.py\n",
        encoding="utf-8",
    )
    samples = resources.root / "samples"
    samples.mkdir()
    (samples / "ok.py").write_text("x = 1\n", encoding="utf-8")

    result = Orchestrator().run(str(resources.root))

    assert result.output_path == (resources.root / "generated" / "test_samples.py").resolve()
    assert "_check('../samples/ok.py', '../samples/ast.ok.json')" in result.output_path.read_text(
        encoding="utf-8"
    )


def test_run_rejects_missing_project(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        Orchestrator().run(str(tmp_path / "missing"))
