"""Tests for per-evaluation value resolution."""

import pytest
from autocode import (
    Binary,
    Choice,
    EvaluationContext,
    IntegerCoercion,
    Integer,
    Real,
    ResolutionError,
    SchemaError,
    ValueKind,
    build_search_space,
)
from autocode.wire import ValuePayload


def literal(kind, data, id="v"):
    return ValuePayload(id=id, type=kind, data=data)


def executable(option_id):
    return ValuePayload(id=option_id, type=ValueKind.EXECUTABLE)


def option_id_of(choice, predicate):
    return next(oid for oid, v in choice.options.items() if predicate(v))


class TestLiterals:
    """Test literal resolution and coercion."""

    def setup_method(self):
        self.x = Integer("x", (0, 10))
        self.lr = Real("lr", (0.0, 1.0))
        self.flag = Binary("flag")
        self.space = build_search_space([self.x, self.lr, self.flag])

    def test_resolve_by_name_and_id(self):
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.INTEGER, 7)})
        assert context.resolve("x") == 7
        assert context.resolve(self.x.id) == 7

    def test_float_and_bool(self):
        context = EvaluationContext(
            self.space,
            {
                self.lr.id: literal(ValueKind.FLOAT, 1),
                self.flag.id: literal(ValueKind.BOOLEAN, True),
            },
        )
        assert context.resolve("lr") == 1.0
        assert isinstance(context.resolve("lr"), float)
        assert context.resolve("flag") is True

    def test_integral_float_is_accepted(self):
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.INTEGER, 7.0)})
        value = context.resolve("x")
        assert value == 7
        assert isinstance(value, int)

    def test_strict_rejects_non_integral(self):
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.INTEGER, 7.5)})
        with pytest.raises(SchemaError, match="non-integral"):
            context.resolve("x")

    @pytest.mark.parametrize("raw,expected", [(7.9, 7), (-7.9, -7), (3.0, 3)])
    def test_truncate_rounds_toward_zero(self, raw, expected):
        context = EvaluationContext(
            self.space,
            {self.x.id: literal(ValueKind.INTEGER, raw)},
            integer_coercion=IntegerCoercion.TRUNCATE,
        )
        assert context.resolve("x") == expected

    def test_declared_kind_wins_over_transport_tag(self):
        """Float-tagged values assigned to an Integer still go through integer coercion."""
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.FLOAT, 7.5)})
        with pytest.raises(SchemaError, match="non-integral"):
            context.resolve("x")

        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.FLOAT, 7.0)})
        value = context.resolve("x")
        assert value == 7
        assert isinstance(value, int)

    def test_float_tag_truncated_for_integer(self):
        context = EvaluationContext(
            self.space,
            {self.x.id: literal(ValueKind.FLOAT, 7.5)},
            integer_coercion=IntegerCoercion.TRUNCATE,
        )
        assert context.resolve("x") == 7

    def test_int_tag_for_real_gives_float(self):
        context = EvaluationContext(self.space, {self.lr.id: literal(ValueKind.INTEGER, 1)})
        value = context.resolve("lr")
        assert value == 1.0
        assert isinstance(value, float)

    def test_number_for_binary_rejected(self):
        context = EvaluationContext(self.space, {self.flag.id: literal(ValueKind.INTEGER, 1)})
        with pytest.raises(SchemaError, match="int value assigned to OptimizationBinary flag"):
            context.resolve("flag")

    def test_bool_tag_for_integer_rejected(self):
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.BOOLEAN, True)})
        with pytest.raises(SchemaError, match="bool value assigned"):
            context.resolve("x")

    def test_bool_is_not_a_number(self):
        context = EvaluationContext(self.space, {self.lr.id: literal(ValueKind.FLOAT, True)})
        with pytest.raises(SchemaError):
            context.resolve("lr")

    def test_unknown_variable(self):
        context = EvaluationContext(self.space, {})
        with pytest.raises(ResolutionError, match="variable not found: nope"):
            context.resolve("nope")

    def test_missing_value(self):
        context = EvaluationContext(self.space, {})
        with pytest.raises(ResolutionError, match="variable value not found: x"):
            context.resolve("x")

    def test_resolved_view(self):
        context = EvaluationContext(self.space, {self.x.id: literal(ValueKind.INTEGER, 3)})
        assert dict(context.resolved) == {}
        context.resolve("x")
        assert dict(context.resolved) == {self.x.id: 3}
        with pytest.raises(TypeError):
            context.resolved[self.x.id] = 4


class TestExecutables:
    """Test option function execution and memoization."""

    def setup_method(self):
        self.calls = []

        def strategy(optimization, *arguments):
            self.calls.append((optimization, arguments))
            return len(self.calls)

        self.choice = Choice.of("strategy", [strategy, 5])
        self.function_id = option_id_of(self.choice, lambda v: v.is_executable)
        self.literal_id = option_id_of(self.choice, lambda v: not v.is_executable)
        self.x = Integer("x", (0, 10))
        self.space = build_search_space([self.choice, self.x])

    def test_executes_with_session_and_arguments(self):
        session = object()
        context = EvaluationContext(
            self.space, {self.choice.id: executable(self.function_id)}, session=session
        )
        assert context.resolve("strategy", "a", 2) == 1
        assert self.calls == [(session, ("a", 2))]

    def test_memoized_within_an_evaluation(self):
        context = EvaluationContext(self.space, {self.choice.id: executable(self.function_id)})
        results = [context.resolve("strategy", n) for n in (1, 2, 3)]
        assert results == [1, 1, 1]
        assert len(self.calls) == 1
        assert self.calls[0][1] == (1,)

    def test_name_and_id_share_the_cache(self):
        context = EvaluationContext(self.space, {self.choice.id: executable(self.function_id)})
        context.resolve(self.choice.id)
        context.resolve("strategy")
        assert len(self.calls) == 1

    def test_new_context_starts_empty(self):
        assignment = {self.choice.id: executable(self.function_id)}
        assert EvaluationContext(self.space, assignment).resolve("strategy") == 1
        assert EvaluationContext(self.space, assignment).resolve("strategy") == 2
        assert len(self.calls) == 2

    def test_literal_option_of_choice(self):
        context = EvaluationContext(
            self.space, {self.choice.id: literal(ValueKind.INTEGER, 5, id=self.literal_id)}
        )
        assert context.resolve("strategy") == 5
        assert self.calls == []

    def test_literal_option_tag_must_match(self):
        context = EvaluationContext(
            self.space, {self.choice.id: literal(ValueKind.FLOAT, 5.0, id=self.literal_id)}
        )
        with pytest.raises(SchemaError, match="float value assigned to int option"):
            context.resolve("strategy")

    def test_literal_option_without_data_uses_declared_value(self):
        context = EvaluationContext(
            self.space, {self.choice.id: literal(ValueKind.INTEGER, None, id=self.literal_id)}
        )
        assert context.resolve("strategy") == 5

    def test_unknown_literal_option(self):
        context = EvaluationContext(
            self.space, {self.choice.id: literal(ValueKind.INTEGER, 5, id="unknown")}
        )
        with pytest.raises(ResolutionError, match="option unknown not found in choice strategy"):
            context.resolve("strategy")

    def test_unknown_option(self):
        context = EvaluationContext(self.space, {self.choice.id: executable("unknown")})
        with pytest.raises(ResolutionError, match="not found in choice strategy"):
            context.resolve("strategy")

    def test_executable_on_non_choice(self):
        context = EvaluationContext(self.space, {self.x.id: executable(self.function_id)})
        with pytest.raises(ResolutionError, match="executable value assigned"):
            context.resolve("x")

    def test_failed_resolution_is_not_cached(self):
        context = EvaluationContext(self.space, {self.choice.id: executable("unknown")})
        with pytest.raises(ResolutionError):
            context.resolve("strategy")
        assert dict(context.resolved) == {}
