"""AI-Chatter: Calculator plugin (/calc, /convert)."""

from __future__ import annotations

import ast
import logging
import math
import operator

from .base import CommandResult, Plugin, PluginCommand, UserIdentity

logger = logging.getLogger("aichatter.plugins.calculator")

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}

# Trigonometry takes degrees.
_FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": lambda deg: math.sin(math.radians(deg)),
    "cos": lambda deg: math.cos(math.radians(deg)),
}

_UNIT_ALIASES = {
    "celsius": "c", "fahrenheit": "f", "kelvin": "k",
    "miles": "mile", "mi": "mile", "kilometers": "km", "kilometres": "km",
    "meters": "m", "metres": "m", "feet": "ft", "foot": "ft",
    "lbs": "lb", "pound": "lb", "pounds": "lb", "kilograms": "kg",
}

# Linear factors; temperatures are handled separately.
_FACTORS: dict[tuple[str, str], float] = {
    ("km", "mile"): 0.621371,
    ("mile", "km"): 1.60934,
    ("m", "ft"): 3.28084,
    ("ft", "m"): 0.3048,
    ("usd", "eur"): 0.85,
    ("eur", "usd"): 1.18,
    ("kg", "lb"): 2.20462,
    ("lb", "kg"): 0.453592,
}


def evaluate_expression(expression: str) -> float:
    """Evaluate arithmetic with + - * / ^, parentheses and sqrt/sin/cos."""
    tree = ast.parse(expression.replace("^", "**").lower(), mode="eval")

    def _eval(node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            # Floats keep huge powers from turning into unbounded ints.
            return float(node.value)
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            return _BINARY_OPS[type(node.op)](_eval(node.left), _eval(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _FUNCTIONS
            and len(node.args) == 1
            and not node.keywords
        ):
            return _FUNCTIONS[node.func.id](_eval(node.args[0]))
        raise ValueError(f"Unsupported expression element: {type(node).__name__}")

    return float(_eval(tree))


def _normalise_unit(unit: str) -> str:
    unit = unit.strip().lower().lstrip("°")
    return _UNIT_ALIASES.get(unit, unit)


def convert_unit(value: float, from_unit: str, to_unit: str) -> float | None:
    src, dst = _normalise_unit(from_unit), _normalise_unit(to_unit)
    if src == dst:
        return value
    temps = {"c", "f", "k"}
    if src in temps and dst in temps:
        celsius = {"c": value, "f": (value - 32) * 5 / 9, "k": value - 273.15}[src]
        return {"c": celsius, "f": celsius * 9 / 5 + 32, "k": celsius + 273.15}[dst]
    factor = _FACTORS.get((src, dst))
    return None if factor is None else value * factor


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return f"{value:.10g}"


class CalculatorPlugin(Plugin):
    id = "calculator"
    name = "Calculator Plugin"
    version = "1.0.0"
    description = "Perform mathematical calculations and conversions"
    author = "AI Chatter Team"

    def get_commands(self) -> list[PluginCommand]:
        return [
            PluginCommand(
                name="calc",
                description="Perform mathematical calculations",
                usage="/calc <expression>",
                examples=["/calc 2 + 2", "/calc 10 * 5", "/calc sqrt(16)", "/calc 2^8"],
                handler=self.handle_calc,
            ),
            PluginCommand(
                name="convert",
                description="Convert between units",
                usage="/convert <value> <from_unit> to <to_unit>",
                examples=["/convert 100 USD to EUR", "/convert 32 F to C", "/convert 1 mile to km"],
                handler=self.handle_convert,
            ),
        ]

    async def handle_calc(self, args: list[str], sender: UserIdentity, channel_id) -> CommandResult:
        expression = " ".join(args).strip()
        if not expression:
            return CommandResult.fail("❌ Expression is required", "Usage: /calc <expression>")
        try:
            result = evaluate_expression(expression)
        except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as exc:
            return CommandResult.fail(f"❌ Invalid expression: {expression}", str(exc))
        shown = _format_number(result)
        return CommandResult.ok(
            "🧮 *Calculator Result*\n\n"
            f"Expression: `{expression}`\n"
            f"Result: `{shown}`",
            data={"expression": expression, "result": result},
        )

    async def handle_convert(self, args: list[str], sender: UserIdentity, channel_id) -> CommandResult:
        if len(args) != 4 or args[2].lower() != "to":
            return CommandResult.fail(
                "❌ Invalid conversion format", "Usage: /convert <value> <from_unit> to <to_unit>"
            )
        raw_value, from_unit, _, to_unit = args
        try:
            value = float(raw_value)
        except ValueError:
            return CommandResult.fail("❌ Invalid value", f"Not a number: {raw_value}")
        result = convert_unit(value, from_unit, to_unit)
        if result is None:
            return CommandResult.fail(
                f"❌ Conversion not supported: {from_unit} to {to_unit}",
                "Supported: C/F/K, km/mile, m/ft, USD/EUR, kg/lb",
            )
        return CommandResult.ok(
            "🔄 *Unit Conversion*\n\n"
            f"*{_format_number(value)} {from_unit}* = *{result:.4f} {to_unit}*",
            data={"from": {"value": value, "unit": from_unit}, "to": {"value": result, "unit": to_unit}},
        )
