"""Tests for the formula Evaluator.

Tests cover:
- Left-to-right argument evaluation
- Arity checks before dispatch
- Lazy functions and short-circuiting
- Variables, records and nesting depth
"""

import logging

import pytest

from crmcore.errors import FormulaError, FormulaTypeError, UnknownFunctionError
from crmcore.formula import Evaluator, FormulaNode, FunctionRegistry
from crmcore.record import Record


def N(name, *args):
    return FormulaNode(name, args)


class TestEvaluate:
    """Tests for basic evaluation."""

    def test_literal_passthrough(self, evaluator):
        assert evaluator.evaluate(5) == 5
        assert evaluator.evaluate([1, 2]) == [1, 2]

    def test_nested_call(self, evaluator):
        node = N("numeric\\summation", N("value", 2), N("numeric\\multiplication", 3, 4))
        assert evaluator.evaluate(node) == 14

    def test_arguments_evaluated_left_to_right(self):
        calls = []
        registry = FunctionRegistry()
        registry.register("trace", lambda args, ctx: calls.append(args[0]) or args[0], min_args=1)
        registry.register("list", lambda args, ctx: list(args))

        Evaluator(registry).evaluate(N("list", N("trace", 1), N("trace", 2), N("trace", 3)))

        assert calls == [1, 2, 3]

    def test_unknown_function(self, evaluator):
        with pytest.raises(UnknownFunctionError):
            evaluator.evaluate(N("nope\\nothing", 1))

    def test_unknown_function_in_argument_aborts(self, evaluator):
        with pytest.raises(UnknownFunctionError):
            evaluator.evaluate(N("string\\length", N("nope")))

    def test_not_enough_arguments(self, evaluator):
        with pytest.raises(FormulaTypeError, match="Not enough arguments"):
            evaluator.evaluate(N("numeric\\summation", 1))

    def test_argument_error_wins_over_unknown_function(self, evaluator):
        with pytest.raises(FormulaTypeError, match="First argument must be array"):
            evaluator.evaluate(N("nope", N("array\\at", "abc", 0)))

    def test_assign_lands_before_arity_failure(self, evaluator):
        variables = {}
        with pytest.raises(FormulaTypeError, match="Not enough arguments"):
            evaluator.evaluate(N("numeric\\summation", N("assign", "x", 1)), variables=variables)
        assert variables == {"x": 1}

    def test_run_accepts_json(self, evaluator):
        script = '{"type": "array\\\\at", "value": [{"type": "list", "value": [10, 20, 30]}, 1]}'
        assert evaluator.run(script) == 20

    def test_run_accepts_dict(self, evaluator):
        assert evaluator.run({"type": "string\\upperCase", "value": ["abc"]}) == "ABC"


class TestLazy:
    """Tests for functions that receive raw argument nodes."""

    def test_and_short_circuits(self, evaluator):
        """The unknown function in the second operand is never reached."""
        assert evaluator.evaluate(N("logical\\and", False, N("nope"))) is False

    def test_or_short_circuits(self, evaluator):
        assert evaluator.evaluate(N("logical\\or", 1, N("nope"))) is True

    def test_if_then_else_only_evaluates_taken_branch(self, evaluator):
        node = N("ifThenElse", N("comparison\\equals", 1, 1), "yes", N("nope"))
        assert evaluator.evaluate(node) == "yes"

    def test_if_then_without_match(self, evaluator):
        assert evaluator.evaluate(N("ifThen", False, "yes")) is None


class TestVariables:
    """Tests for variables and assignment."""

    def test_assign_writes_back_to_caller(self, evaluator):
        variables = {}
        result = evaluator.evaluate(N("assign", "total", N("numeric\\summation", 1, 2)), variables=variables)
        assert result == 3
        assert variables == {"total": 3}

    def test_bundle_sees_earlier_assignment(self, evaluator):
        node = N(
            "bundle",
            N("assign", "x", 2),
            N("numeric\\multiplication", N("variable", "x"), 10),
        )
        assert evaluator.evaluate(node) == 20

    def test_unset_variable_is_soft(self, evaluator, caplog):
        with caplog.at_level(logging.DEBUG, logger="crmcore"):
            assert evaluator.evaluate(N("variable", "missing")) is None
        assert "Variable 'missing' is not set." in caplog.text

    def test_assign_requires_name(self, evaluator):
        with pytest.raises(FormulaTypeError):
            evaluator.evaluate(N("assign", 5, 1))


class TestRecordContext:
    """Tests for formulas reading and writing a record."""

    def test_attribute(self, evaluator):
        record = Record({"userName": "alice"})
        assert evaluator.evaluate(N("attribute", "userName"), record=record) == "alice"
        assert evaluator.evaluate(N("attribute", "missing"), record=record) is None

    def test_attribute_without_record(self, evaluator):
        with pytest.raises(FormulaError, match="No record in context"):
            evaluator.evaluate(N("attribute", "userName"))

    def test_set_attribute(self, evaluator):
        record = Record.from_storage({"id": "1", "amount": 5})
        evaluator.evaluate(
            N("entity\\setAttribute", "amount", N("numeric\\summation", N("attribute", "amount"), 1)),
            record=record,
        )
        assert record.get("amount") == 6
        assert evaluator.evaluate(N("entity\\isAttributeChanged", "amount"), record=record) is True
        assert evaluator.evaluate(N("entity\\attributeFetched", "amount"), record=record) == 5


class TestDepth:
    """Tests for the nesting limit."""

    def _nested(self, depth):
        node = True
        for _ in range(depth):
            node = N("logical\\not", node)
        return node

    def test_within_limit(self):
        assert Evaluator(max_depth=5).evaluate(self._nested(5)) is False

    def test_exceeds_limit(self):
        with pytest.raises(FormulaError, match="Maximum nesting depth"):
            Evaluator(max_depth=3).evaluate(self._nested(5))

    def test_deep_json_formula(self):
        script = '{"type": "logical\\\\not", "value": [' * 400 + "1" + "]}" * 400
        with pytest.raises(FormulaError):
            Evaluator(max_depth=100).run(script)

    def test_nesting_beyond_interpreter_stack(self):
        with pytest.raises(FormulaError, match="Nesting too deep"):
            Evaluator(max_depth=5000).evaluate(self._nested(2000))


class TestLogger:

    def test_custom_logger_receives_notices(self, caplog):
        custom = logging.getLogger("test.formula")
        with caplog.at_level(logging.DEBUG, logger="test.formula"):
            Evaluator(logger=custom).evaluate(N("array\\at", [1], 3))
        assert [r.name for r in caplog.records] == ["test.formula"]
