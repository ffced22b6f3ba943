"""
sandbox.py
----------
Remote expression evaluation for the "/evaluate" action.

An expression is a small Python snippet such as

    host.song().transport.bpm = 140

It never reaches ``exec``/``eval``. The source is parsed with ``ast.parse``,
every node is checked against a whitelist, and the tree is then walked by a
tiny interpreter whose only names are the capability set built for that one
evaluation:

    math, string, table        read-only helper namespaces
    host, song                 the host control surface
    assert, error, pcall, print, range, enumerate, pairs, ipairs, next,
    len, type, str/tostring, tonumber, int, float, bool, abs, min, max,
    sum, round, sorted, list, dict, tuple

Names and attributes starting with an underscore are rejected before
anything runs, so dunder walks (``().__class__.__bases__`` and friends) are
not expressible. Nothing assigned inside an expression survives it.

Result
──────
    (True, value)        value of `return`, or of a trailing expression
    (False, diagnostic)  syntax error, disallowed construct, or runtime error
"""

from __future__ import annotations

import ast
import math as _math
import operator
import sys
from dataclasses import dataclass
from types import MappingProxyType, SimpleNamespace
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Set

from .errors import ConfigurationError, EvaluationError, SandboxViolation


def _log(message: str) -> None:
    """Best-effort logging that never breaks stdio transport."""
    try:
        print(message, file=sys.stderr)
    except Exception:
        pass


@dataclass(frozen=True)
class EvaluationResult:
    success: bool
    value: Any = None
    diagnostic: str = ""

    def __bool__(self) -> bool:
        return self.success

    def __iter__(self) -> Iterator[Any]:
        yield self.success
        yield self.value if self.success else self.diagnostic


# ══════════════════════════════════════════════════════════════════════════
# Capability set
# ══════════════════════════════════════════════════════════════════════════

def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple, dict, set)):
        return "table"
    if callable(value):
        return "function"
    return "userdata"


def _error(message: Any = "error") -> None:
    raise EvaluationError(str(message))


def _tonumber(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 0)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _pcall(func: Callable[..., Any], *args: Any, **kwargs: Any) -> tuple:
    try:
        return True, func(*args, **kwargs)
    except Exception as exc:  # caller asked for protected mode
        return False, f"{type(exc).__name__}: {exc}"


def _pairs(container: Any) -> list:
    if isinstance(container, Mapping):
        return list(container.items())
    return list(enumerate(container))


def _ipairs(container: Any) -> list:
    return list(enumerate(container))


def _print(*values: Any) -> None:
    _log("OSC evaluate: " + " ".join(str(v) for v in values))


def _fresh(func: Callable[..., Any]) -> Callable[..., Any]:
    # a new function object per evaluation, so attributes set on it die with it
    return lambda *args, **kwargs: func(*args, **kwargs)


def _namespace(**members: Any) -> SimpleNamespace:
    return SimpleNamespace(**members)


def _host_namespace(host: Any) -> SimpleNamespace:
    """Snapshot of the host's public members; rebinding them stays local."""
    public = {name: getattr(host, name) for name in dir(host) if not name.startswith("_")}
    return _namespace(**public)


def _math_namespace() -> SimpleNamespace:
    public = {name: getattr(_math, name) for name in dir(_math) if not name.startswith("_")}
    return _namespace(**public)


def _string_namespace() -> SimpleNamespace:
    return _namespace(
        upper=lambda s: str(s).upper(),
        lower=lambda s: str(s).lower(),
        len=lambda s: len(str(s)),
        rep=lambda s, n, sep="": sep.join([str(s)] * int(n)),
        reverse=lambda s: str(s)[::-1],
        sub=lambda s, i, j=None: str(s)[int(i):None if j is None else int(j)],
        find=lambda s, needle, start=0: str(s).find(str(needle), int(start)),
        split=lambda s, sep=None: str(s).split(sep),
        strip=lambda s: str(s).strip(),
        join=lambda sep, items: str(sep).join(str(i) for i in items),
        replace=lambda s, old, new: str(s).replace(str(old), str(new)),
    )


def _table_insert(table: list, *args: Any) -> None:
    if len(args) == 1:
        table.append(args[0])
    elif len(args) == 2:
        table.insert(int(args[0]), args[1])
    else:
        raise EvaluationError("wrong number of arguments to 'insert'")


def _table_namespace() -> SimpleNamespace:
    return _namespace(
        insert=_fresh(_table_insert),
        remove=lambda table, index=-1: table.pop(int(index)),
        concat=lambda table, sep="": str(sep).join(str(v) for v in table),
        sort=lambda table, key=None, reverse=False: table.sort(key=key, reverse=bool(reverse)),
        keys=lambda table: list(table.keys()),
        values=lambda table: list(table.values()),
        count=lambda table: len(table),
        copy=lambda table: table.copy(),
    )


def build_capabilities(host: Any = None, extra: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Return a fresh name table for one evaluation."""
    caps: Dict[str, Any] = {
        "math": _math_namespace(),
        "string": _string_namespace(),
        "table": _table_namespace(),
        "error": _fresh(_error),
        "pcall": _fresh(_pcall),
        "print": _fresh(_print),
        "range": range,
        "enumerate": enumerate,
        "pairs": _fresh(_pairs),
        "ipairs": _fresh(_ipairs),
        "next": next,
        "len": len,
        "type": _fresh(_type_name),
        "str": str,
        "tostring": str,
        "tonumber": _fresh(_tonumber),
        "int": int,
        "float": float,
        "bool": bool,
        "abs": abs,
        "min": min,
        "max": max,
        "sum": sum,
        "round": round,
        "sorted": sorted,
        "list": list,
        "dict": dict,
        "tuple": tuple,
    }
    if host is not None:
        caps["host"] = _host_namespace(host)
        song = getattr(host, "song", None)
        if callable(song):
            caps["song"] = song
    if extra:
        for name, value in extra.items():
            if name.startswith("_"):
                raise ConfigurationError(f"capability name '{name}' must not start with '_'")
            caps[name] = value
    return caps


# ══════════════════════════════════════════════════════════════════════════
# Static check
# ══════════════════════════════════════════════════════════════════════════

_ALLOWED_NODES = (
    ast.Module, ast.Expr, ast.Assign, ast.AugAssign, ast.If, ast.For, ast.While,
    ast.Break, ast.Continue, ast.Pass, ast.Assert, ast.Return,
    ast.Constant, ast.Name, ast.Attribute, ast.Subscript, ast.Slice, ast.Call,
    ast.keyword, ast.List, ast.Tuple, ast.Set, ast.Dict, ast.BinOp, ast.UnaryOp,
    ast.BoolOp, ast.Compare, ast.IfExp, ast.ListComp, ast.SetComp, ast.DictComp,
    ast.GeneratorExp, ast.comprehension, ast.JoinedStr, ast.FormattedValue,
    ast.NamedExpr,
    ast.expr_context, ast.boolop, ast.unaryop, ast.cmpop, ast.operator,
)

# Attribute names that expose interpreter internals without a leading underscore.
_BLOCKED_ATTRIBUTES = frozenset({
    "format", "format_map", "mro",
    "gi_frame", "gi_code", "gi_yieldframe", "cr_frame", "cr_code", "ag_frame", "ag_code",
    "f_globals", "f_locals", "f_builtins", "f_back", "f_code", "tb_frame", "tb_next",
    "func_globals", "func_code",
})

_DESCRIBE = {
    ast.Import: "import statements",
    ast.ImportFrom: "import statements",
    ast.FunctionDef: "function definitions",
    ast.AsyncFunctionDef: "function definitions",
    ast.ClassDef: "class definitions",
    ast.Lambda: "lambda expressions",
    ast.Global: "global declarations",
    ast.Nonlocal: "nonlocal declarations",
    ast.With: "with statements",
    ast.Try: "try statements",
    ast.Raise: "raise statements (use error())",
    ast.Delete: "del statements",
    ast.Starred: "starred expressions",
    ast.Yield: "yield expressions",
    ast.YieldFrom: "yield expressions",
    ast.Await: "await expressions",
    ast.MatMult: "the @ operator",
}


class _SafetyChecker(ast.NodeVisitor):
    """Rejects any node outside the whitelist before execution."""

    def __init__(self, available: Set[str]) -> None:
        self.available = available
        self.loop_depth = 0

    def check(self, tree: ast.Module) -> None:
        assigned = {
            node.id
            for node in ast.walk(tree)
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store)
        }
        self.available = self.available | assigned
        self.visit(tree)

    def generic_visit(self, node: ast.AST) -> None:
        if isinstance(node, ast.MatMult) or not isinstance(node, _ALLOWED_NODES):
            what = _DESCRIBE.get(type(node), type(node).__name__)
            raise SandboxViolation(f"{what} not allowed", getattr(node, "lineno", 0))
        super().generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("_"):
            raise SandboxViolation(f"name '{node.id}' not allowed", node.lineno)
        if isinstance(node.ctx, ast.Load) and node.id not in self.available:
            raise SandboxViolation(f"name '{node.id}' is not available", node.lineno)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr in _BLOCKED_ATTRIBUTES:
            raise SandboxViolation(f"attribute '{node.attr}' not allowed", node.lineno)
        self.generic_visit(node)

    def visit_Dict(self, node: ast.Dict) -> None:
        if any(key is None for key in node.keys):
            raise SandboxViolation("dict unpacking not allowed", node.lineno)
        self.generic_visit(node)

    def visit_keyword(self, node: ast.keyword) -> None:
        if node.arg is None:
            raise SandboxViolation("keyword unpacking not allowed", getattr(node, "lineno", 0))
        self.generic_visit(node)

    def visit_comprehension(self, node: ast.comprehension) -> None:
        if node.is_async:
            raise SandboxViolation("async comprehensions not allowed")
        self.generic_visit(node)

    def _visit_loop(self, node: ast.AST) -> None:
        # the else clause runs after the loop, so break/continue there is stray
        for field in ("target", "iter", "test"):
            child = getattr(node, field, None)
            if child is not None:
                self.visit(child)
        self.loop_depth += 1
        try:
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self.loop_depth -= 1
        for stmt in node.orelse:
            self.visit(stmt)

    visit_For = _visit_loop
    visit_While = _visit_loop

    def visit_Break(self, node: ast.Break) -> None:
        if not self.loop_depth:
            raise SandboxViolation("'break' outside loop", node.lineno)

    def visit_Continue(self, node: ast.Continue) -> None:
        if not self.loop_depth:
            raise SandboxViolation("'continue' outside loop", node.lineno)


# ══════════════════════════════════════════════════════════════════════════
# Interpreter
# ══════════════════════════════════════════════════════════════════════════

_BINARY_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
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


class _Return(Exception):
    def __init__(self, value: Any) -> None:
        super().__init__()
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _Interpreter:
    """Walks a checked tree. One instance per evaluation."""

    def __init__(self, capabilities: Mapping[str, Any]) -> None:
        self.capabilities = MappingProxyType(dict(capabilities))
        self.scope: Dict[str, Any] = {}
        self.root_scope = self.scope

    def run(self, tree: ast.Module) -> Any:
        result = None
        try:
            for stmt in tree.body:
                if isinstance(stmt, ast.Expr):
                    result = self.eval(stmt.value)
                else:
                    self.execute(stmt)
                    result = None
        except _Return as ret:
            return ret.value
        return result

    # ── Statements ─────────────────────────────────────────────────────── #

    def execute(self, node: ast.stmt) -> None:
        getattr(self, f"_exec_{type(node).__name__}")(node)

    def _exec_block(self, body: list) -> None:
        for stmt in body:
            self.execute(stmt)

    def _exec_Expr(self, node: ast.Expr) -> None:
        self.eval(node.value)

    def _exec_Assign(self, node: ast.Assign) -> None:
        value = self.eval(node.value)
        for target in node.targets:
            self._store(target, value)

    def _exec_AugAssign(self, node: ast.AugAssign) -> None:
        op = _BINARY_OPS[type(node.op)]
        target = node.target
        if isinstance(target, ast.Name):
            current = self._lookup(target.id)
            self.scope[target.id] = op(current, self.eval(node.value))
        elif isinstance(target, ast.Attribute):
            obj = self.eval(target.value)
            setattr(obj, target.attr, op(getattr(obj, target.attr), self.eval(node.value)))
        else:
            obj = self.eval(target.value)
            key = self.eval(target.slice)
            obj[key] = op(obj[key], self.eval(node.value))

    def _exec_If(self, node: ast.If) -> None:
        self._exec_block(node.body if self.eval(node.test) else node.orelse)

    def _exec_For(self, node: ast.For) -> None:
        for item in self.eval(node.iter):
            self._store(node.target, item)
            try:
                self._exec_block(node.body)
            except _Break:
                return
            except _Continue:
                continue
        self._exec_block(node.orelse)

    def _exec_While(self, node: ast.While) -> None:
        while self.eval(node.test):
            try:
                self._exec_block(node.body)
            except _Break:
                return
            except _Continue:
                continue
        self._exec_block(node.orelse)

    def _exec_Break(self, node: ast.Break) -> None:
        raise _Break()

    def _exec_Continue(self, node: ast.Continue) -> None:
        raise _Continue()

    def _exec_Pass(self, node: ast.Pass) -> None:
        pass

    def _exec_Assert(self, node: ast.Assert) -> None:
        if not self.eval(node.test):
            message = self.eval(node.msg) if node.msg is not None else "assertion failed!"
            raise AssertionError(message)

    def _exec_Return(self, node: ast.Return) -> None:
        raise _Return(self.eval(node.value) if node.value is not None else None)

    # ── Targets ────────────────────────────────────────────────────────── #

    def _store(self, target: ast.expr, value: Any) -> None:
        if isinstance(target, ast.Name):
            self.scope[target.id] = value
        elif isinstance(target, ast.Attribute):
            setattr(self.eval(target.value), target.attr, value)
        elif isinstance(target, ast.Subscript):
            self.eval(target.value)[self.eval(target.slice)] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise ValueError(
                    f"cannot unpack {len(values)} values into {len(target.elts)} targets"
                )
            for element, item in zip(target.elts, values):
                self._store(element, item)
        else:
            raise SandboxViolation(f"cannot assign to {type(target).__name__}")

    def _lookup(self, name: str) -> Any:
        if name in self.scope:
            return self.scope[name]
        if name in self.capabilities:
            return self.capabilities[name]
        raise NameError(f"name '{name}' is not defined")

    # ── Expressions ────────────────────────────────────────────────────── #

    def eval(self, node: ast.expr) -> Any:
        return getattr(self, f"_eval_{type(node).__name__}")(node)

    def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        return self._lookup(node.id)

    def _eval_NamedExpr(self, node: ast.NamedExpr) -> Any:
        value = self.eval(node.value)
        self.scope[node.target.id] = value
        # inside a comprehension the target binds in the enclosing scope too
        self.root_scope[node.target.id] = value
        return value

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        return getattr(self.eval(node.value), node.attr)

    def _eval_Subscript(self, node: ast.Subscript) -> Any:
        return self.eval(node.value)[self.eval(node.slice)]

    def _eval_Slice(self, node: ast.Slice) -> slice:
        return slice(
            self.eval(node.lower) if node.lower is not None else None,
            self.eval(node.upper) if node.upper is not None else None,
            self.eval(node.step) if node.step is not None else None,
        )

    def _eval_Call(self, node: ast.Call) -> Any:
        func = self.eval(node.func)
        args = [self.eval(arg) for arg in node.args]
        kwargs = {kw.arg: self.eval(kw.value) for kw in node.keywords}
        return func(*args, **kwargs)

    def _eval_List(self, node: ast.List) -> list:
        return [self.eval(elt) for elt in node.elts]

    def _eval_Tuple(self, node: ast.Tuple) -> tuple:
        return tuple(self.eval(elt) for elt in node.elts)

    def _eval_Set(self, node: ast.Set) -> set:
        return {self.eval(elt) for elt in node.elts}

    def _eval_Dict(self, node: ast.Dict) -> dict:
        return {self.eval(k): self.eval(v) for k, v in zip(node.keys, node.values)}

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        return _BINARY_OPS[type(node.op)](self.eval(node.left), self.eval(node.right))

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return _UNARY_OPS[type(node.op)](self.eval(node.operand))

    def _eval_BoolOp(self, node: ast.BoolOp) -> Any:
        value = None
        for operand in node.values:
            value = self.eval(operand)
            if isinstance(node.op, ast.And) and not value:
                return value
            if isinstance(node.op, ast.Or) and value:
                return value
        return value

    def _eval_Compare(self, node: ast.Compare) -> bool:
        left = self.eval(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.eval(comparator)
            if not _COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp) -> Any:
        return self.eval(node.body) if self.eval(node.test) else self.eval(node.orelse)

    def _eval_JoinedStr(self, node: ast.JoinedStr) -> str:
        return "".join(str(self.eval(value)) for value in node.values)

    def _eval_FormattedValue(self, node: ast.FormattedValue) -> str:
        value = self.eval(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        elif node.conversion == ord("s"):
            value = str(value)
        spec = self.eval(node.format_spec) if node.format_spec is not None else ""
        return format(value, spec)

    # comprehensions run in a child scope that is discarded afterwards

    def _comprehension(self, generators: list, emit: Callable[[], None]) -> None:
        saved = self.scope
        self.scope = dict(saved)
        try:
            self._generate(generators, 0, emit)
        finally:
            self.scope = saved

    def _generate(self, generators: list, index: int, emit: Callable[[], None]) -> None:
        if index == len(generators):
            emit()
            return
        gen = generators[index]
        for item in self.eval(gen.iter):
            self._store(gen.target, item)
            if all(self.eval(cond) for cond in gen.ifs):
                self._generate(generators, index + 1, emit)

    def _eval_ListComp(self, node: ast.ListComp) -> list:
        out: list = []
        self._comprehension(node.generators, lambda: out.append(self.eval(node.elt)))
        return out

    def _eval_GeneratorExp(self, node: ast.GeneratorExp) -> Iterator[Any]:
        # evaluated eagerly, handed out as an iterator
        return iter(self._eval_ListComp(node))

    def _eval_SetComp(self, node: ast.SetComp) -> set:
        out: set = set()
        self._comprehension(node.generators, lambda: out.add(self.eval(node.elt)))
        return out

    def _eval_DictComp(self, node: ast.DictComp) -> dict:
        out: dict = {}

        def emit() -> None:
            out[self.eval(node.key)] = self.eval(node.value)

        self._comprehension(node.generators, emit)
        return out


# ══════════════════════════════════════════════════════════════════════════
# Public API
# ══════════════════════════════════════════════════════════════════════════

class SandboxedEvaluator:
    """Evaluates expressions against the host control surface only."""

    def __init__(self, host: Any = None, extra_capabilities: Optional[Mapping[str, Any]] = None) -> None:
        self.host = host
        self.extra_capabilities = dict(extra_capabilities or {})
        # fail at startup, not on the first evaluation
        build_capabilities(self.host, self.extra_capabilities)

    def compile(self, expression: str) -> ast.Module:
        """Parse and check. Raises SyntaxError or SandboxViolation."""
        tree = ast.parse(expression, filename="<evaluate>", mode="exec")
        available = set(build_capabilities(self.host, self.extra_capabilities))
        _SafetyChecker(available).check(tree)
        return tree

    def evaluate(self, expression: str) -> EvaluationResult:
        if not isinstance(expression, str):
            return EvaluationResult(False, diagnostic="expression must be a string")

        try:
            tree = self.compile(expression)
        except SyntaxError as exc:
            return EvaluationResult(
                False, diagnostic=f"SyntaxError: {exc.msg} (line {exc.lineno})"
            )
        except (SandboxViolation, ValueError, RecursionError) as exc:
            return EvaluationResult(False, diagnostic=f"{type(exc).__name__}: {exc}")

        interpreter = _Interpreter(build_capabilities(self.host, self.extra_capabilities))
        try:
            value = interpreter.run(tree)
        except Exception as exc:  # expression code can raise anything
            return EvaluationResult(False, diagnostic=f"{type(exc).__name__}: {exc}")
        return EvaluationResult(True, value=value)
