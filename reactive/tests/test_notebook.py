"""
Tests for Notebook and Cell.

Covers:
  - Per-cell isolated compile: one failure never blocks the others
  - Exactly one writer error per failing cell
  - Cell reset / dispose_cell, notebook dispose
  - create_variable / import_variable / create_module
"""

import logging

import pytest

from reactive.notebook import Notebook
from reactive.types import FileRef, NotebookSpec, RecordingObserver
from reactive.writer import Writer


@pytest.fixture
def notebook():
    nb = Notebook()
    yield nb
    nb.dispose()


@pytest.fixture
def writer():
    return Writer()


def add_cells(notebook, *sources):
    return [notebook.create_cell().text(source) for source in sources]


class TestCompile:
    def test_valid_cells(self, notebook, writer):
        add_cells(notebook, "a = 1", "b = a + 1")

        report = notebook.compile(writer)

        assert report.ok
        assert writer.errors == []
        assert notebook.value("b") == 2

    def test_failing_cell_does_not_block_others(self, notebook, writer):
        good, bad = add_cells(notebook, "a = 1", "b = (")

        report = notebook.compile(writer)

        assert [r.ok for r in report.results] == [True, False]
        assert len(writer.errors) == 1
        assert writer.errors[0].cell is bad
        assert writer.errors_for(good) == []
        assert notebook.value("a") == 1

    def test_failure_in_first_cell(self, notebook, writer):
        bad, good = add_cells(notebook, "import os", "b = 2")

        report = notebook.compile(writer)

        assert report.failed[0].cell is bad
        assert report.compiled[0].cell is good
        assert notebook.value("b") == 2

    def test_n_cells_with_k_failures(self, notebook, writer):
        sources = ["a = 1", "b = (", "c = a + 1", "d = )", "e = c * 2", "f, g = 1, 2"]
        add_cells(notebook, *sources)

        report = notebook.compile(writer)

        assert len(report.results) == 6
        assert len(report.failed) == 3
        assert len(writer.errors) == 3
        assert {e.cell for e in writer.errors} == {r.cell for r in report.failed}
        assert notebook.value("e") == 4

    def test_cell_that_raises_is_reported_once(self, notebook, writer, monkeypatch):
        _, b = add_cells(notebook, "a = 1", "b = x")

        def explode(sink):
            raise RuntimeError("undefined x")

        monkeypatch.setattr(b, "compile", explode)
        report = notebook.compile(writer)

        [error] = writer.errors
        assert error.cell is b
        assert "undefined x" in error.message
        assert report.failed[0].cell is b
        assert notebook.value("a") == 1

    def test_compile_error_carries_line(self, notebook, writer):
        add_cells(notebook, "x = 1\ny = 2")
        notebook.compile(writer)

        [error] = writer.errors
        assert error.line == 2
        assert error.to_dict()["line"] == 2

    def test_failed_recompile_keeps_previous_binding(self, notebook, writer):
        [cell] = add_cells(notebook, "a = 1")
        notebook.compile(writer)

        cell.text("a = (")
        notebook.compile(writer)

        assert notebook.value("a") == 1

    def test_recompile_with_new_source(self, notebook, writer):
        [cell] = add_cells(notebook, "a = 1")
        add_cells(notebook, "b = a * 3")
        notebook.compile(writer)

        cell.text("a = 2")
        notebook.compile(writer)

        assert notebook.value("b") == 6

    def test_runtime_error_is_not_a_compile_error(self, notebook, writer):
        observer = RecordingObserver()
        notebook.create_cell(observer).text("c = oops")

        report = notebook.compile(writer)

        assert report.ok
        assert writer.errors == []
        assert str(observer.error) == "oops is not defined"

    def test_anonymous_cell(self, notebook, writer):
        [cell] = add_cells(notebook, "40 + 2")
        notebook.compile(writer)

        assert cell.name is None
        assert cell.variable.value == 42

    def test_cell_result_name(self, notebook, writer):
        add_cells(notebook, "answer = 42")
        [result] = notebook.compile(writer).results
        assert result.name == "answer"

    def test_compile_after_dispose_reports_each_cell(self, writer):
        nb = Notebook()
        add_cells(nb, "a = 1", "b = 2")
        cells = nb.cells
        nb.dispose()

        for cell in cells:
            result = cell.compile(writer)
            assert not result.ok
        assert len(writer.errors) == 2


class TestCells:
    def test_dispose_cell_removes_binding(self, notebook, writer):
        a, b = add_cells(notebook, "a = 1", "b = a + 1")
        notebook.compile(writer)

        notebook.dispose_cell(a)

        assert notebook.cells == [b]
        assert str(b.variable.error) == "a is not defined"

    def test_reset_is_idempotent(self, notebook, writer):
        [cell] = add_cells(notebook, "a = 1")
        notebook.compile(writer)

        cell.reset()
        cell.reset()

        assert cell.variable is None
        assert notebook.main().names() == []

    def test_cells_keep_insertion_order(self, notebook):
        cells = add_cells(notebook, "a = 1", "b = 2", "c = 3")
        assert notebook.cells == cells


class TestVariables:
    def test_create_variable(self, notebook):
        v = notebook.create_variable(None, "x", [], 5)
        assert notebook.value("x") == 5
        assert v.name == "x"

    def test_create_variable_without_definition(self, notebook):
        v = notebook.create_variable()
        assert v.name is None

    def test_create_variable_logs_definition_errors(self, notebook, caplog):
        with caplog.at_level(logging.ERROR, logger="reactive.notebook"):
            v = notebook.create_variable(None, "bad name", [], 1)

        assert v.name is None
        assert "bad name" in caplog.text

    def test_import_variable_from_module(self, notebook):
        def define(module, observer):
            module.define("shared", [], "from elsewhere")

        other = notebook.create_module(define)
        notebook.import_variable("shared", "local", other)

        assert notebook.value("local") == "from elsewhere"

    def test_create_module_is_cached_per_define(self, notebook):
        def define(module, observer):
            module.define("x", [], 1)

        assert notebook.create_module(define) is notebook.create_module(define)


class TestLibrary:
    def test_file_attachment_builtin(self, writer):
        nb = Notebook(NotebookSpec(files=[FileRef("data.csv", "https://files.example.com/data.csv")]))
        add_cells(nb, 'url = FileAttachment("data.csv").url')
        nb.compile(writer)

        assert nb.value("url") == "https://files.example.com/data.csv"
        nb.dispose()

    def test_missing_attachment_rejects_cell(self, writer):
        nb = Notebook()
        observer = RecordingObserver()
        nb.create_cell(observer).text('url = FileAttachment("nope.csv").url')
        nb.compile(writer)

        assert isinstance(observer.error, FileNotFoundError)
        nb.dispose()

    def test_plugins_override_builtins(self, writer):
        nb = Notebook(plugins={"download": lambda blob, name: f"custom:{name}", "VERSION": "1.2"})
        add_cells(nb, 'd = download(None, "x.txt")', "v = VERSION")
        nb.compile(writer)

        assert nb.value("d") == "custom:x.txt"
        assert nb.value("v") == "1.2"
        nb.dispose()
