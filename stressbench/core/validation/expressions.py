"""
Restricted expression evaluator for custom rules and legacy test expressions.

Rule code is authored by whoever edits the request suite, so it is never
handed to ``eval``. Instead the source is parsed as a single Python expression
and interpreted node by node against a whitelist:

- literals and ``true``/``false``/``null`` aliases
- boolean, comparison and arithmetic operators (no ``**``)
- conditional expressions, subscripts, slices and collection displays
- list/generator comprehensions
- calls to whitelisted builtins, namespace helpers (``json``, ``math``,
  ``re``) and a few read-only methods on str/list/dict/match objects

Attribute access on a mapping reads the key (``response.data.id``) and
``.length`` on a list or string returns its length. Anything else (imports,
lambdas, assignment, private or dunder names, unknown names) raises
``ExpressionError``.
"""

from __future__ import annotations

import ast
import json
import logging
import math
import operator
import re
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping

from stressbench.config import settings
from stressbench.core.error_handling import ExpressionError

logger = logging.getLogger(__name__)

MAX_NODES = 400
MAX_SEQUENCE_LENGTH = 100_000
MAX_ITERATIONS = 100_000


class SafeNamespace:
    """A read-only bag of helpers exposed to expressions (e.g. ``json``)."""

    def __init__(self, name: str, members: Mapping[str, Any]):
        self._name = name
        self._members = dict(members)

    def get(self, attr: str) -> Any:
        if attr not in self._members:
            raise ExpressionError(f"{self._name}.{attr} is not available")
        return self._members[attr]

    def __repr__(self) -> str:
        return f"<namespace {self._name}>"


def _re_flags(ignore_case: bool) -> int:
    return re.IGNORECASE if ignore_case else 0


NAMESPACES: dict[str, SafeNamespace] = {
    "json": SafeNamespace("json", {"loads": json.loads, "dumps": json.dumps}),
    "math": SafeNamespace(
        "math",
        {
            "floor": math.floor,
            "ceil": math.ceil,
            "sqrt": math.sqrt,
            "fabs": math.fabs,
            "log": math.log,
            "exp": math.exp,
            "isfinite": math.isfinite,
            "isnan": math.isnan,
            "pi": math.pi,
            "e": math.e,
            "inf": math.inf,
        },
    ),
    "re": SafeNamespace(
        "re",
        {
            "search": lambda pattern, text, ignore_case=False: re.search(
                pattern, text, _re_flags(ignore_case)
            ),
            "match": lambda pattern, text, ignore_case=False: re.match(
                pattern, text, _re_flags(ignore_case)
            ),
            "fullmatch": lambda pattern, text, ignore_case=False: re.fullmatch(
                pattern, text, _re_flags(ignore_case)
            ),
            "findall": lambda pattern, text, ignore_case=False: re.findall(
                pattern, text, _re_flags(ignore_case)
            ),
        },
    ),
}

BUILTINS: dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "round": round,
    "sorted": sorted,
    "list": list,
    "dict": dict,
    "set": set,
    "tuple": tuple,
}

CONSTANTS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

_STR_METHODS = frozenset(
    {
        "lower",
        "upper",
        "strip",
        "lstrip",
        "rstrip",
        "startswith",
        "endswith",
        "split",
        "find",
        "count",
        "join",
        "isdigit",
    }
)
_LIST_METHODS = frozenset({"count", "index"})
_DICT_METHODS = frozenset({"get", "keys", "values", "items"})
_MATCH_METHODS = frozenset({"group", "groups", "groupdict", "start", "end"})

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_CMP_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_RETURN_PREFIX = re.compile(r"^\s*return\b\s*")
_JS_OPERATORS = re.compile(r"===|!==|&&|\|\||!(?!=)")


def _allowed_method(obj: Any, name: str) -> bool:
    if isinstance(obj, str):
        return name in _STR_METHODS
    if isinstance(obj, (list, tuple)):
        return name in _LIST_METHODS
    if isinstance(obj, dict):
        return name in _DICT_METHODS
    if isinstance(obj, re.Match):
        return name in _MATCH_METHODS
    return False


def _normalize_source(source: str) -> str:
    text = (source or "").strip()
    text = _RETURN_PREFIX.sub("", text, count=1)
    text = text.rstrip().rstrip(";").strip()
    return text


@lru_cache(maxsize=256)
def _warn_unparsable(text: str, reason: str) -> None:
    # Logs once per distinct expression.
    if _JS_OPERATORS.search(text):
        logger.warning(
            "Expression %r uses JavaScript operators (===, !==, &&, ||, !); "
            "write it as a Python expression (==, !=, and, or, not): %s",
            text,
            reason,
        )
    else:
        logger.warning("Expression %r could not be parsed: %s", text, reason)


@lru_cache(maxsize=256)
def compile_expression(source: str) -> ast.Expression:
    """
    Parse and statically check an expression.

    Raises:
        ExpressionError: On empty, oversized, unparsable or disallowed source
    """
    text = _normalize_source(source)
    if not text:
        raise ExpressionError("expression is empty")
    if len(text) > settings.MAX_EXPRESSION_LENGTH:
        raise ExpressionError("expression is too long")

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        _warn_unparsable(text, e.msg)
        raise ExpressionError(f"invalid expression: {e.msg}") from None
    except (ValueError, RecursionError) as e:
        raise ExpressionError(f"invalid expression: {e}") from None

    node_count = 0
    for node in ast.walk(tree):
        node_count += 1
        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise ExpressionError(f"name {node.id!r} is not allowed")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise ExpressionError(f"attribute {node.attr!r} is not allowed")
    if node_count > MAX_NODES:
        raise ExpressionError("expression is too complex")
    return tree


class _Evaluator:
    def __init__(self, names: Mapping[str, Any]):
        self._scopes: list[dict[str, Any]] = [
            dict(CONSTANTS),
            dict(BUILTINS),
            dict(NAMESPACES),
            dict(names),
        ]

    def run(self, tree: ast.Expression) -> Any:
        return self._eval(tree.body)

    def _eval(self, node: ast.AST) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise ExpressionError(f"unsupported syntax: {type(node).__name__}")
        return handler(node)

    def _lookup(self, name: str) -> Any:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        raise ExpressionError(f"name {name!r} is not defined")

    def _eval_Constant(self, node: ast.Constant) -> Any:
        if isinstance(node.value, bytes):
            raise ExpressionError("bytes literals are not supported")
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        return self._lookup(node.id)

    def _eval_BoolOp(self, node: ast.BoolOp) -> Any:
        is_and = isinstance(node.op, ast.And)
        value: Any = None
        for operand in node.values:
            value = self._eval(operand)
            if is_and and not value:
                return value
            if not is_and and value:
                return value
        return value

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self._eval(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.UAdd):
            return +operand
        raise ExpressionError(f"unsupported operator: {type(node.op).__name__}")

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"unsupported operator: {type(node.op).__name__}")
        left = self._eval(node.left)
        right = self._eval(node.right)
        if isinstance(node.op, ast.Mult):
            self._check_repeat(left, right)
            self._check_repeat(right, left)
        if isinstance(node.op, ast.Mod) and isinstance(left, str):
            raise ExpressionError("string formatting is not supported")
        return op(left, right)

    @staticmethod
    def _check_repeat(seq: Any, times: Any) -> None:
        if isinstance(seq, (str, list, tuple)) and isinstance(times, int):
            if len(seq) * times > MAX_SEQUENCE_LENGTH:
                raise ExpressionError("sequence repetition is too large")

    def _eval_Compare(self, node: ast.Compare) -> bool:
        left = self._eval(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = self._eval(comparator)
            op = _CMP_OPS.get(type(op_node))
            if op is None:
                raise ExpressionError(
                    f"unsupported comparison: {type(op_node).__name__}"
                )
            if not op(left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp) -> Any:
        if self._eval(node.test):
            return self._eval(node.body)
        return self._eval(node.orelse)

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        obj = self._eval(node.value)
        attr = node.attr
        if isinstance(obj, SafeNamespace):
            return obj.get(attr)
        if isinstance(obj, dict):
            return obj.get(attr)
        if attr == "length" and isinstance(obj, (str, list, tuple)):
            return len(obj)
        raise ExpressionError(
            f"attribute {attr!r} is not available on {type(obj).__name__}"
        )

    def _eval_Call(self, node: ast.Call) -> Any:
        func = self._resolve_callable(node.func)

        args: list[Any] = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ExpressionError("star arguments are not supported")
            args.append(self._eval(arg))

        kwargs: dict[str, Any] = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionError("keyword unpacking is not supported")
            kwargs[kw.arg] = self._eval(kw.value)

        return func(*args, **kwargs)

    def _resolve_callable(self, func_node: ast.AST) -> Callable[..., Any]:
        if isinstance(func_node, ast.Attribute):
            obj = self._eval(func_node.value)
            name = func_node.attr
            if isinstance(obj, SafeNamespace):
                fn = obj.get(name)
            elif _allowed_method(obj, name):
                fn = getattr(obj, name)
            else:
                raise ExpressionError(
                    f"method {name!r} is not available on {type(obj).__name__}"
                )
        elif isinstance(func_node, ast.Name):
            fn = self._lookup(func_node.id)
            if not any(fn is allowed for allowed in BUILTINS.values()):
                raise ExpressionError(f"{func_node.id!r} is not callable")
        else:
            raise ExpressionError("only named functions can be called")

        if not callable(fn):
            raise ExpressionError("value is not callable")
        return fn

    def _eval_Subscript(self, node: ast.Subscript) -> Any:
        obj = self._eval(node.value)
        index = self._eval(node.slice)
        return obj[index]

    def _eval_Slice(self, node: ast.Slice) -> slice:
        lower = self._eval(node.lower) if node.lower is not None else None
        upper = self._eval(node.upper) if node.upper is not None else None
        step = self._eval(node.step) if node.step is not None else None
        return slice(lower, upper, step)

    def _eval_List(self, node: ast.List) -> list:
        return [self._eval(elt) for elt in node.elts]

    def _eval_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self._eval(elt) for elt in node.elts)

    def _eval_Set(self, node: ast.Set) -> set:
        return {self._eval(elt) for elt in node.elts}

    def _eval_Dict(self, node: ast.Dict) -> dict:
        out: dict[Any, Any] = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                raise ExpressionError("dict unpacking is not supported")
            out[self._eval(key)] = self._eval(value)
        return out

    def _eval_ListComp(self, node: ast.ListComp) -> list:
        return list(self._comprehend(node.elt, node.generators))

    def _eval_GeneratorExp(self, node: ast.GeneratorExp) -> list:
        # Materialized eagerly; any()/all() still see the same values.
        return list(self._comprehend(node.elt, node.generators))

    def _comprehend(
        self, elt: ast.AST, generators: list[ast.comprehension]
    ) -> Iterable[Any]:
        results: list[Any] = []
        iterations = 0

        def _walk(depth: int) -> None:
            nonlocal iterations
            if depth == len(generators):
                results.append(self._eval(elt))
                return
            gen = generators[depth]
            if gen.is_async:
                raise ExpressionError("async comprehensions are not supported")
            for item in self._eval(gen.iter):
                iterations += 1
                if iterations > MAX_ITERATIONS:
                    raise ExpressionError("comprehension is too large")
                self._scopes.append(self._bind(gen.target, item))
                try:
                    if all(self._eval(cond) for cond in gen.ifs):
                        _walk(depth + 1)
                finally:
                    self._scopes.pop()

        _walk(0)
        return results

    def _bind(self, target: ast.AST, value: Any) -> dict[str, Any]:
        if isinstance(target, ast.Name):
            return {target.id: value}
        if isinstance(target, ast.Tuple):
            values = list(value)
            if len(values) != len(target.elts):
                raise ExpressionError("cannot unpack comprehension target")
            scope: dict[str, Any] = {}
            for sub_target, sub_value in zip(target.elts, values):
                scope.update(self._bind(sub_target, sub_value))
            return scope
        raise ExpressionError("unsupported comprehension target")


def evaluate(source: str, names: Mapping[str, Any]) -> Any:
    """
    Evaluate ``source`` with ``names`` in scope.

    Raises:
        ExpressionError: If the expression is rejected or fails at runtime
    """
    tree = compile_expression(source)
    try:
        return _Evaluator(names).run(tree)
    except ExpressionError:
        raise
    except Exception as e:
        raise ExpressionError(f"{type(e).__name__}: {e}") from e


def evaluate_predicate(source: str, names: Mapping[str, Any]) -> bool:
    """Evaluate ``source`` and coerce the result to a boolean."""
    return bool(evaluate(source, names))
