"""Linear formula compilation using AST parsing.

Classification and layout formulas are small linear expressions over line
codes and named references, e.g. ``"010 - 011"`` or
``"operatingTotal + 070 + 080"``. They are compiled once, at table load time,
into signed terms; evaluation then only ever reads already-computed rows.
All functions are pure and have no side effects.
"""

from __future__ import annotations

# =============================================================================
# Standard Library Imports
# =============================================================================
import ast
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

# =============================================================================
# Public API
# =============================================================================
__all__ = [
    "FormulaError",
    "Term",
    "compile_formula",
    "evaluate_terms",
    "formula_operands",
]

# Line and account codes are 3-4 digit literals ("010"); leading zeros are not
# valid Python integers, so they are rewritten to identifiers before parsing.
_CODE_TOKEN = re.compile(r"(?<![\w.])(\d{3,4})(?![\w.])")
_CODE_PREFIX = "code_"


class FormulaError(ValueError):
    """A formula is not a linear expression over codes and names."""


@dataclass(frozen=True)
class Term:
    """One signed operand of a compiled formula."""

    ref: str
    coefficient: int
    is_code: bool = False

    def render(self) -> str:
        sign = "-" if self.coefficient < 0 else "+"
        magnitude = abs(self.coefficient)
        return f"{sign} {magnitude} * {self.ref}" if magnitude != 1 else f"{sign} {self.ref}"


# =============================================================================
# AST Compilation
# =============================================================================


def _compile_name(node: ast.Name, scale: int) -> dict[str, int]:
    return {node.id: scale}


def _compile_unary(node: ast.UnaryOp, scale: int) -> dict[str, int]:
    # Dispatch table for unary operations
    unary_scale: dict[type, Callable[[int], int]] = {
        ast.USub: lambda s: -s,
        ast.UAdd: lambda s: s,
    }
    op_func = unary_scale.get(type(node.op))
    if op_func is None:
        msg = f"Unsupported unary operator: {type(node.op).__name__}"
        raise FormulaError(msg)
    return _compile_node(node.operand, op_func(scale))


def _int_constant(node: ast.AST) -> int | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
        return node.value
    return None


def _merge(left: dict[str, int], right: dict[str, int]) -> dict[str, int]:
    merged = dict(left)
    for ref, coefficient in right.items():
        merged[ref] = merged.get(ref, 0) + coefficient
    return merged


def _compile_binop(node: ast.BinOp, scale: int) -> dict[str, int]:
    if isinstance(node.op, ast.Add):
        return _merge(_compile_node(node.left, scale), _compile_node(node.right, scale))
    if isinstance(node.op, ast.Sub):
        return _merge(_compile_node(node.left, scale), _compile_node(node.right, -scale))
    if isinstance(node.op, ast.Mult):
        # Only integer multipliers keep the expression linear
        left_const = _int_constant(node.left)
        right_const = _int_constant(node.right)
        if left_const is not None:
            return _compile_node(node.right, scale * left_const)
        if right_const is not None:
            return _compile_node(node.left, scale * right_const)
        msg = "Multiplication requires an integer constant operand"
        raise FormulaError(msg)
    msg = f"Unsupported operator: {type(node.op).__name__}"
    raise FormulaError(msg)


def _compile_constant(node: ast.Constant, _scale: int) -> dict[str, int]:
    msg = f"Bare constant {node.value!r} is not allowed in a formula"
    raise FormulaError(msg)


# Dispatch table for AST node compilation
_AST_COMPILERS: dict[type, Callable] = {
    ast.Name: _compile_name,
    ast.UnaryOp: _compile_unary,
    ast.BinOp: _compile_binop,
    ast.Constant: _compile_constant,
}


def _compile_node(node: ast.AST, scale: int) -> dict[str, int]:
    compiler = _AST_COMPILERS.get(type(node))
    if compiler is None:
        msg = f"Unsupported formula element: {type(node).__name__}"
        raise FormulaError(msg)
    return compiler(node, scale)


# =============================================================================
# Entry Points
# =============================================================================


def compile_formula(formula: str) -> tuple[Term, ...]:
    """Compile a linear formula into signed terms.

    Parameters
    ----------
    formula
        Expression using ``+``, ``-``, unary minus, and integer multipliers
        over codes (``"010"``) and named references (``"grossProfit"``).

    Returns
    -------
    tuple[Term, ...]
        Terms in first-appearance order; operands that cancel out are dropped.

    Raises
    ------
    FormulaError
        If the formula is empty, not parseable, or not linear.
    """
    expr = formula.strip()
    if not expr:
        msg = "Empty formula"
        raise FormulaError(msg)

    rewritten = _CODE_TOKEN.sub(lambda m: f"{_CODE_PREFIX}{m.group(1)}", expr)
    try:
        tree = ast.parse(rewritten, mode="eval")
    except SyntaxError as e:
        msg = f"Cannot parse formula {formula!r}: {e.msg}"
        raise FormulaError(msg) from e

    coefficients = _compile_node(tree.body, 1)
    terms = []
    for name, coefficient in coefficients.items():
        if coefficient == 0:
            continue
        if name.startswith(_CODE_PREFIX):
            terms.append(Term(ref=name.removeprefix(_CODE_PREFIX), coefficient=coefficient, is_code=True))
        else:
            terms.append(Term(ref=name, coefficient=coefficient))
    return tuple(terms)


def formula_operands(formula: str) -> set[str]:
    """Refs (codes and names) a formula reads."""
    return {term.ref for term in compile_formula(formula)}


def evaluate_terms(terms: tuple[Term, ...], values: Mapping[str, float]) -> float:
    """Evaluate compiled terms against resolved operand values (missing = 0)."""
    return sum(term.coefficient * values.get(term.ref, 0.0) for term in terms)
