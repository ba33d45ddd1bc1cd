"""
Tests that enforce coding standards.

Import conventions:
- `import X as _x` for external modules, `import cvwriter.x as x` for internal ones
- no `from X import Y` outside __init__.py (re-exports), __future__ and TYPE_CHECKING

Layering:
- cvwriter.core never reaches up into the CLI or the terminal libraries
"""

import ast as _ast
import pathlib as _pathlib

import pytest as _pytest

SRC_DIR = _pathlib.Path(__file__).parent.parent / "src" / "cvwriter"
TESTS_DIR = _pathlib.Path(__file__).parent.parent / "tests"

# Modules cvwriter.core may not import
CORE_FORBIDDEN = ("cvwriter.cli", "click", "rich")


def _python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    return sorted(directory.rglob("*.py"))


def _is_type_checking_guard(node: _ast.If) -> bool:
    test = node.test
    if isinstance(test, _ast.Name):
        return test.id == "TYPE_CHECKING"
    if isinstance(test, _ast.Attribute):
        return test.attr == "TYPE_CHECKING"
    return False


def _from_imports(tree: _ast.AST) -> list[_ast.ImportFrom]:
    """Collect `from X import Y` nodes, skipping __future__ and TYPE_CHECKING blocks."""
    found: list[_ast.ImportFrom] = []

    def visit(node: _ast.AST) -> None:
        for child in _ast.iter_child_nodes(node):
            if isinstance(child, _ast.If) and _is_type_checking_guard(child):
                # Only the else branch runs at import time
                for stmt in child.orelse:
                    visit(stmt)
                continue
            if isinstance(child, _ast.ImportFrom) and child.module != "__future__":
                found.append(child)
            visit(child)

    visit(tree)
    return found


def _imported_modules(tree: _ast.AST) -> set[str]:
    modules: set[str] = set()
    for node in _ast.walk(tree):
        if isinstance(node, _ast.Import):
            modules.update(alias.name for alias in node.names)
        elif isinstance(node, _ast.ImportFrom) and node.module:
            modules.add(node.module)
    return modules


def _violations(directory: _pathlib.Path, *, skip: tuple[str, ...] = ()) -> list[str]:
    violations: list[str] = []
    for path in _python_files(directory):
        if path.name == "__init__.py" or path.name in skip:
            continue
        tree = _ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in _from_imports(tree):
            names = ", ".join(alias.name for alias in node.names)
            violations.append(f"{path}:{node.lineno}: from {node.module} import {names}")
    return violations


def _fail_with(violations: list[str]) -> None:
    msg = "Found forbidden 'from X import Y' imports:\n"
    msg += "\n".join(f"  {v}" for v in violations)
    msg += "\n\nUse 'import X as _x' (external) or 'import X as x' (internal) instead."
    _pytest.fail(msg)


class TestImportStyle:
    def test_src_no_from_imports(self) -> None:
        violations = _violations(SRC_DIR)
        if violations:
            _fail_with(violations)

    def test_tests_no_from_imports(self) -> None:
        violations = _violations(TESTS_DIR, skip=("test_coding_standards.py",))
        if violations:
            _fail_with(violations)


class TestLayering:
    @_pytest.mark.parametrize(
        "path",
        _python_files(SRC_DIR / "core"),
        ids=lambda p: p.name,
    )
    def test_core_does_not_import_ui(self, path: _pathlib.Path) -> None:
        tree = _ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        bad = sorted(
            module
            for module in _imported_modules(tree)
            if any(module == f or module.startswith(f + ".") for f in CORE_FORBIDDEN)
        )
        assert bad == [], f"{path.name} imports {bad}"


class TestImportExtraction:
    """Tests for the import extraction logic itself."""

    def test_detects_from_import(self) -> None:
        nodes = _from_imports(_ast.parse("from pathlib import Path"))
        assert [n.module for n in nodes] == ["pathlib"]

    def test_allows_future_imports(self) -> None:
        assert _from_imports(_ast.parse("from __future__ import annotations")) == []

    def test_ignores_type_checking_block(self) -> None:
        content = """
import typing as _typing

if _typing.TYPE_CHECKING:
    from some_module import SomeType

def foo():
    pass
"""
        assert _from_imports(_ast.parse(content)) == []

    def test_detects_import_after_type_checking(self) -> None:
        content = """
import typing as _typing

if _typing.TYPE_CHECKING:
    from allowed import Type

from forbidden import Other
"""
        nodes = _from_imports(_ast.parse(content))
        assert [n.module for n in nodes] == ["forbidden"]

    def test_detects_nested_import(self) -> None:
        content = """
def lazy():
    from json import dumps
    return dumps
"""
        nodes = _from_imports(_ast.parse(content))
        assert [n.module for n in nodes] == ["json"]
