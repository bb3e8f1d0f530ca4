"""
Placeholder interpolation for TuneHub request templates.

Method configs carry strings such as ``"{{keyword}}"`` or
``"{{(page - 1) * limit}}"``. Each placeholder is parsed with :mod:`ast` and
evaluated by a small whitelist interpreter: literals, context names,
arithmetic, comparisons, boolean logic, conditional expressions and a fixed
table of helper functions. Nothing else is accepted, so a config document can
never run code on this server.
"""
import ast
import logging
import math
import operator
import re
from typing import Any, Callable, Mapping, Union
from urllib.parse import quote

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

Context = Mapping[str, Union[str, int, float]]


class TemplateError(Exception):
    pass


def to_text(value: Any) -> str:
    """Render a value the way the template author expects to see it in a URL."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        raise TemplateError(f"not a number: {value!r}")
    return int(number) if number.is_integer() else number


def _check_magnitude(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_MAGNITUDE:
        raise TemplateError("number too large")
    return value


def _parse_int(value: Any) -> int:
    match = re.match(r"\s*([+-]?\d+)", to_text(value))
    if not match:
        raise TemplateError(f"not an integer: {value!r}")
    return int(match.group(1))


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "String": to_text,
    "Number": _to_number,
    "parseInt": _parse_int,
    "encodeURIComponent": lambda value: quote(to_text(value), safe="-_.!~*'()"),
    "str": to_text,
    "int": lambda value: int(_to_number(value)),
    "float": lambda value: float(_to_number(value)),
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
}

MATH_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "floor": math.floor,
    "ceil": math.ceil,
    "round": lambda value: math.floor(value + 0.5),
    "abs": abs,
    "min": min,
    "max": max,
}

BINARY_OPERATORS = {
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

COMPARE_OPERATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

LITERAL_NAMES = {"true": True, "false": False, "null": None}

MAX_EXPONENT = 64
MAX_MAGNITUDE = 10 ** 100
MAX_DEPTH = 64


class _Evaluator:
    def __init__(self, context: Context):
        self.context = context
        self.depth = 0

    def visit(self, node: ast.AST) -> Any:
        handler = getattr(self, f"visit_{type(node).__name__}", None)
        if handler is None:
            raise TemplateError(f"unsupported syntax: {type(node).__name__}")
        if self.depth >= MAX_DEPTH:
            raise TemplateError("expression nested too deeply")
        self.depth += 1
        try:
            return handler(node)
        finally:
            self.depth -= 1

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        if not isinstance(node.value, (str, int, float, bool, type(None))):
            raise TemplateError(f"unsupported literal: {node.value!r}")
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.context:
            return self.context[node.id]
        if node.id in LITERAL_NAMES:
            return LITERAL_NAMES[node.id]
        raise TemplateError(f"unknown name: {node.id}")

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Add):
            if isinstance(left, str) or isinstance(right, str):
                return to_text(left) + to_text(right)
            return _check_magnitude(_to_number(left) + _to_number(right))
        op = BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise TemplateError(f"unsupported operator: {type(node.op).__name__}")
        left, right = _to_number(left), _to_number(right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise TemplateError(f"exponent too large: {right}")
        if isinstance(node.op, (ast.Mult, ast.Pow)):
            _check_magnitude(left)
            _check_magnitude(right)
        try:
            return _check_magnitude(op(left, right))
        except (ArithmeticError, OverflowError) as e:
            raise TemplateError(str(e)) from e

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -_to_number(operand)
        if isinstance(node.op, ast.UAdd):
            return _to_number(operand)
        raise TemplateError(f"unsupported operator: {type(node.op).__name__}")

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result = None
        for value_node in node.values:
            result = self.visit(value_node)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = COMPARE_OPERATORS.get(type(op_node))
            if op is None:
                raise TemplateError(f"unsupported comparison: {type(op_node).__name__}")
            right = self.visit(comparator)
            try:
                if not op(left, right):
                    return False
            except TypeError as e:
                raise TemplateError(str(e)) from e
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if self.visit(node.test) else self.visit(node.orelse)

    def visit_Call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise TemplateError("keyword arguments are not supported")
        func = self._resolve_function(node.func)
        args = [self.visit(arg) for arg in node.args]
        try:
            return func(*args)
        except TemplateError:
            raise
        except (TypeError, ValueError, ArithmeticError) as e:
            raise TemplateError(str(e)) from e

    def _resolve_function(self, node: ast.AST) -> Callable[..., Any]:
        if isinstance(node, ast.Name) and node.id in FUNCTIONS:
            return FUNCTIONS[node.id]
        if (
            isinstance(node, ast.Attribute)
            and isinstance(node.value, ast.Name)
            and node.value.id == "Math"
            and node.attr in MATH_FUNCTIONS
        ):
            return MATH_FUNCTIONS[node.attr]
        raise TemplateError(f"unsupported function: {ast.dump(node)}")


def evaluate(expr: str, context: Context) -> Any:
    """Evaluate a single placeholder expression against ``context``."""
    try:
        tree = ast.parse(expr.strip(), mode="eval")
    except (SyntaxError, ValueError, RecursionError, MemoryError) as e:
        raise TemplateError(f"invalid expression: {expr!r}") from e
    try:
        return _Evaluator(context).visit(tree)
    except (RecursionError, MemoryError) as e:
        raise TemplateError(f"expression too complex: {expr!r}") from e


def render(template: str, context: Context) -> str:
    """Replace every ``{{expr}}`` in ``template``; failed ones stay verbatim."""

    def replace(match: re.Match) -> str:
        expr = match.group(1)
        try:
            return to_text(evaluate(expr, context))
        except TemplateError as e:
            logger.error(f"模板解析失败：{expr} ({e})")
            return match.group(0)

    return PLACEHOLDER.sub(replace, template)


def render_object(obj: Any, context: Context) -> Any:
    """Apply :func:`render` to every string inside nested lists and dicts."""
    if isinstance(obj, str):
        return render(obj, context)
    if isinstance(obj, list):
        return [render_object(item, context) for item in obj]
    if isinstance(obj, dict):
        return {key: render_object(value, context) for key, value in obj.items()}
    return obj
