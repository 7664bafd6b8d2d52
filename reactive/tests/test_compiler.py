"""Tests for the cell compiler."""

import pytest

from reactive.compiler import SAFE_BUILTINS, compile_cell
from reactive.types import CellCompileError


class TestCompileCell:
    def test_named_cell(self):
        cell = compile_cell("total = price * quantity")

        assert cell.name == "total"
        assert cell.inputs == ["price", "quantity"]
        assert cell.definition(3, 4) == 12

    def test_annotated_cell(self):
        cell = compile_cell("n: int = 1 + 1")
        assert cell.name == "n"
        assert cell.definition() == 2

    def test_anonymous_expression(self):
        cell = compile_cell("1 + 1")
        assert cell.name is None
        assert cell.inputs == []
        assert cell.definition() == 2

    def test_empty_source(self):
        cell = compile_cell("   \n")
        assert cell.name is None
        assert cell.definition is None

    def test_builtins_are_not_inputs(self):
        cell = compile_cell("n = len(items) + max(1, 2)")
        assert cell.inputs == ["items"]
        assert cell.definition([1, 2, 3]) == 5

    def test_inputs_in_first_appearance_order(self):
        cell = compile_cell("z = b + a + b")
        assert cell.inputs == ["b", "a"]

    def test_comprehension_variables_are_not_inputs(self):
        cell = compile_cell("squares = [x * x for x in values]")
        assert cell.inputs == ["values"]
        assert cell.definition([1, 2]) == [1, 4]

    def test_lambda_arguments_are_not_inputs(self):
        cell = compile_cell("f = lambda v: v + offset")
        assert cell.inputs == ["offset"]
        assert cell.definition(10)(1) == 11

    def test_multiline_expression(self):
        cell = compile_cell("xs = [\n    1,\n    2,\n]")
        assert cell.definition() == [1, 2]

    def test_syntax_error_has_position(self):
        with pytest.raises(CellCompileError) as exc:
            compile_cell("a = 1\nb = (")
        assert exc.value.line == 2
        assert exc.value.offset is not None

    def test_two_statements_rejected(self):
        with pytest.raises(CellCompileError, match="exactly one statement") as exc:
            compile_cell("a = 1\nb = 2")
        assert exc.value.line == 2
        assert exc.value.offset == 1

    def test_tuple_assignment_rejected(self):
        with pytest.raises(CellCompileError, match="single name"):
            compile_cell("a, b = 1, 2")

    def test_statement_cells_rejected(self):
        with pytest.raises(CellCompileError, match="unsupported cell statement: Import"):
            compile_cell("import os")

    def test_runtime_error_raised_from_definition(self):
        cell = compile_cell("x = 1 / zero")
        with pytest.raises(ZeroDivisionError):
            cell.definition(0)


class TestRestrictedScope:
    def test_open_is_an_unresolved_input(self):
        cell = compile_cell("x = open('out.txt', 'w')")
        assert cell.inputs == ["open"]

    def test_unsafe_builtins_are_not_reachable(self):
        for name in ("open", "eval", "exec", "compile", "getattr", "globals", "vars", "input"):
            assert name not in SAFE_BUILTINS
            assert compile_cell(f"y = {name}").inputs == [name]

    def test_definition_sees_only_safe_builtins(self):
        cell = compile_cell("x = callable(len)")
        assert cell.definition() is True

    @pytest.mark.parametrize(
        "source",
        [
            "m = __import__('os')",
            "b = __builtins__",
            "c = ().__class__.__bases__",
            "g = f.__globals__",
        ],
    )
    def test_dunder_access_rejected(self, source):
        with pytest.raises(CellCompileError, match="is not allowed"):
            compile_cell(source)

    def test_single_underscore_names_allowed(self):
        cell = compile_cell("y = _private + 1")
        assert cell.inputs == ["_private"]
