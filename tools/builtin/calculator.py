"""Calculator tool: evaluates plain arithmetic expressions safely."""

import ast
import operator

from agent.exceptions import ToolExecutionError
from tools.base_tool import Tool

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

MAX_EXPONENT = 1000
# keeps integer results printable under the default int-to-str digit limit
MAX_RESULT_BITS = 10_000


class CalculatorTool(Tool):
    name = "calculator"
    description = "Evaluate an arithmetic expression using + - * / // % ** and parentheses."
    parameters = {
        "type": "object",
        "properties": {
            "expression": {"type": "string", "description": "Expression to evaluate, e.g. '3 + 5 * 2'"},
        },
        "required": ["expression"],
    }

    def execute(self, args):
        if not isinstance(args, dict) or not isinstance(args.get("expression"), str):
            raise ToolExecutionError("calculator requires a string 'expression' argument")
        expression = args["expression"].strip()
        try:
            tree = ast.parse(expression, mode="eval")
        except SyntaxError as e:
            raise ToolExecutionError(f"Invalid expression: {e.msg}") from e
        try:
            return _evaluate(tree.body)
        except ZeroDivisionError as e:
            raise ToolExecutionError("Division by zero") from e
        except OverflowError as e:
            raise ToolExecutionError("Result too large") from e


def _evaluate(node: ast.AST):
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _check_size(_BINARY_OPS[type(node.op)](left, right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ToolExecutionError(f"Unsupported expression element: {type(node).__name__}")


def _check_power(base, exponent) -> None:
    if abs(exponent) > MAX_EXPONENT:
        raise ToolExecutionError(f"Exponent too large (max {MAX_EXPONENT})")
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        if abs(base).bit_length() * exponent > MAX_RESULT_BITS:
            raise ToolExecutionError("Result too large")


def _check_size(value):
    if isinstance(value, int) and value.bit_length() > MAX_RESULT_BITS:
        raise ToolExecutionError("Result too large")
    return value
