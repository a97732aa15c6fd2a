"""Statement lowering: imperative bodies become single expressions.

Statements are threaded back to front, so each one wraps the lowered
remainder of its block. The result is a functional-surface ``FunDef`` with
one rule, which then goes through the same pattern-match compilation and
desugaring as equations written in the functional surface.
"""

from __future__ import annotations

from collections.abc import Callable

from bendfront.ast_nodes import (
    AssignStmt,
    BendExpr,
    BendStmt,
    BinaryExpr,
    DoExpr,
    DoStmt,
    Expr,
    FoldExpr,
    FoldStmt,
    FunDef,
    IfStmt,
    ImpDef,
    InPlaceOpStmt,
    LetExpr,
    MatchArm,
    MatchExpr,
    MatchStmt,
    OpenExpr,
    OpenStmt,
    ReturnStmt,
    Rule,
    Stmt,
    SwitchArm,
    SwitchExpr,
    SwitchStmt,
    VarExpr,
    VarPattern,
)
from bendfront.errors import ErrorKind, PassError
from bendfront.source import Span

_COMPOUND = (IfStmt, SwitchStmt, MatchStmt, FoldStmt, BendStmt)


def _control_flow(message: str, span: Span) -> PassError:
    return PassError(ErrorKind.CONTROL_FLOW, message, span)


def _branches(stmt: Stmt) -> list[list[Stmt]]:
    match stmt:
        case IfStmt():
            return [stmt.then_body, stmt.else_body]
        case SwitchStmt() | MatchStmt() | FoldStmt():
            return [c.body for c in stmt.cases]
        case BendStmt():
            return [stmt.step, stmt.base]
    return []


def terminates(block: list[Stmt]) -> bool:
    """True when every path through ``block`` ends in a return."""
    if not block:
        return False
    last = block[-1]
    if isinstance(last, (ReturnStmt, DoStmt)):
        return True
    if isinstance(last, _COMPOUND):
        return all(terminates(b) for b in _branches(last))
    return False


def lower_definition(definition: ImpDef) -> FunDef:
    """Lower an imperative definition into a one-rule functional definition."""
    body = lower_block(definition.body, definition.span)
    params = [VarPattern(p, definition.span) for p in definition.params]
    return FunDef(definition.name, [Rule(params, body, definition.span)], definition.span)


def lower_block(block: list[Stmt], owner: Span) -> Expr:
    """Lower a statement list to an expression.

    ``owner`` is reported when the block is empty.
    """
    if not block:
        raise _control_flow("block ends without 'return'", owner)
    stmt, rest = block[0], block[1:]

    match stmt:
        case ReturnStmt(value=value):
            if rest:
                raise _control_flow("statement after 'return'", rest[0].span)
            return value
        case AssignStmt(pattern=pattern, value=value):
            return LetExpr(pattern, value, _lower_rest(stmt, rest), stmt.span)
        case InPlaceOpStmt(name=name, op=op, value=value):
            target = VarExpr(name, stmt.span)
            updated = BinaryExpr(op, target, value, stmt.span)
            return LetExpr(VarPattern(name, stmt.span), updated,
                           _lower_rest(stmt, rest), stmt.span)
        case OpenStmt(type_name=type_name, var=var):
            return OpenExpr(type_name, var, _lower_rest(stmt, rest), stmt.span)
        case DoStmt(monad=monad, steps=steps, result=result):
            if rest:
                raise _control_flow("statement after a 'do' block", rest[0].span)
            if result is None:
                raise _control_flow("'do' block must end with a value", stmt.span)
            return DoExpr(monad, steps, result, stmt.span)
        case FoldStmt() | BendStmt():
            return _lower_loop(stmt, rest)
        case _:
            return _lower_branching(stmt, rest)


def _lower_rest(stmt: Stmt, rest: list[Stmt]) -> Expr:
    if not rest:
        raise _control_flow("block ends without 'return'", stmt.span)
    return lower_block(rest, stmt.span)


def _check_uniform(stmt: Stmt, rest: list[Stmt]) -> bool:
    """Classify a compound statement; returns True when all branches return."""
    flags = [terminates(b) for b in _branches(stmt)]
    if all(flags):
        if rest:
            raise _control_flow("statement after a block that always returns", rest[0].span)
        return True
    if any(flags):
        branch = _branches(stmt)[flags.index(False)]
        raise _control_flow("this branch does not end in 'return'", branch[-1].span)
    return False


def _lower_branching(stmt: IfStmt | SwitchStmt | MatchStmt, rest: list[Stmt]) -> Expr:
    """``if``/``switch``/``match``: a falling-through remainder joins every branch."""
    _check_uniform(stmt, rest)

    def branch(body: list[Stmt]) -> Expr:
        return lower_block(body + rest, stmt.span)

    match stmt:
        case IfStmt(cond=cond, then_body=then_body, else_body=else_body):
            arms = [
                SwitchArm(0, branch(else_body), stmt.span),
                SwitchArm(None, branch(then_body), stmt.span),
            ]
            return SwitchExpr(None, cond, arms, stmt.span)
        case SwitchStmt(bind=bind, arg=arg, cases=cases):
            return SwitchExpr(bind, arg,
                              [SwitchArm(c.label, branch(c.body), c.span) for c in cases],
                              stmt.span)
        case MatchStmt(bind=bind, arg=arg, cases=cases):
            return MatchExpr(bind, arg,
                             [MatchArm(c.label, branch(c.body), c.span) for c in cases],
                             stmt.span)
    raise AssertionError(f"unexpected statement {type(stmt).__name__}")


def _lower_loop(stmt: FoldStmt | BendStmt, rest: list[Stmt]) -> Expr:
    """``fold``/``bend`` either return from every branch or all assign one variable."""
    if _check_uniform(stmt, rest):
        return _loop_expr(stmt, lambda body: lower_block(body, stmt.span))

    target: str | None = None
    for body in _branches(stmt):
        last = body[-1]
        if not (isinstance(last, AssignStmt) and isinstance(last.pattern, VarPattern)):
            raise _control_flow(
                f"a '{_keyword(stmt)}' branch that does not return must end by "
                "assigning its result", last.span)
        if target is None:
            target = last.pattern.name
        elif last.pattern.name != target:
            raise _control_flow(
                f"'{_keyword(stmt)}' branches assign different variables: "
                f"'{target}' and '{last.pattern.name}'", last.span)
    assert target is not None

    def as_result(body: list[Stmt]) -> Expr:
        last = body[-1]
        assert isinstance(last, AssignStmt)
        return lower_block(body[:-1] + [ReturnStmt(last.value, last.span)], stmt.span)

    value = _loop_expr(stmt, as_result)
    return LetExpr(VarPattern(target, stmt.span), value, _lower_rest(stmt, rest), stmt.span)


def _loop_expr(stmt: FoldStmt | BendStmt, lower: Callable[[list[Stmt]], Expr]) -> Expr:
    if isinstance(stmt, FoldStmt):
        arms = [MatchArm(c.label, lower(c.body), c.span) for c in stmt.cases]
        return FoldExpr(stmt.bind, stmt.arg, arms, stmt.span)
    return BendExpr(stmt.bindings, stmt.cond, lower(stmt.step), lower(stmt.base), stmt.span)


def _keyword(stmt: Stmt) -> str:
    return "fold" if isinstance(stmt, FoldStmt) else "bend"
