"""Name and arity registry built in Pass 1.

The registry records every type with its ordered constructors and fields,
and every function with its parameter names. It is built once over all
source units and then threaded, read-only, through every later pass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from bendfront.ast_nodes import FunDef, ImpDef, Program, TypeDecl, VarPattern
from bendfront.errors import Diagnostic, ErrorKind, make_error
from bendfront.source import Span


@dataclass(frozen=True)
class FieldInfo:
    name: str
    recursive: bool


@dataclass(frozen=True)
class CtrInfo:
    name: str  # qualified: Type/Ctr, or the type name for objects
    type_name: str
    fields: tuple[FieldInfo, ...]

    @property
    def short_name(self) -> str:
        prefix = self.type_name + "/"
        return self.name[len(prefix):] if self.name.startswith(prefix) else self.name

    @property
    def arity(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class TypeInfo:
    name: str
    ctors: tuple[str, ...]
    is_object: bool = False
    span: Span | None = None


@dataclass(frozen=True)
class FunctionInfo:
    name: str
    params: tuple[str | None, ...]  # None where a rule head has no plain name
    span: Span | None = None

    @property
    def arity(self) -> int:
        return len(self.params)


def _builtin(name: str, *ctors: tuple[str, tuple[FieldInfo, ...]]) -> tuple[TypeInfo, list[CtrInfo]]:
    infos = [CtrInfo(f"{name}/{ctr}", name, fields) for ctr, fields in ctors]
    return TypeInfo(name, tuple(c.name for c in infos)), infos


_CONS_FIELDS = (FieldInfo("head", False), FieldInfo("tail", True))

BUILTIN_TYPES = [
    _builtin("String", ("Cons", _CONS_FIELDS), ("Nil", ())),
    _builtin("List", ("Cons", _CONS_FIELDS), ("Nil", ())),
    _builtin("Nat", ("Succ", (FieldInfo("pred", True),)), ("Zero", ())),
]


class Registry:
    """Immutable view of every type, constructor and function in the program."""

    def __init__(self, types: Mapping[str, TypeInfo], ctors: Mapping[str, CtrInfo],
                 functions: Mapping[str, FunctionInfo]) -> None:
        self._types = MappingProxyType(dict(types))
        self._ctors = MappingProxyType(dict(ctors))
        self._functions = MappingProxyType(dict(functions))
        by_short: dict[str, list[str]] = {}
        for ctr in self._ctors.values():
            by_short.setdefault(ctr.short_name, []).append(ctr.name)
        self._by_short = MappingProxyType({k: tuple(v) for k, v in by_short.items()})

    @property
    def types(self) -> Mapping[str, TypeInfo]:
        return self._types

    @property
    def ctors(self) -> Mapping[str, CtrInfo]:
        return self._ctors

    @property
    def functions(self) -> Mapping[str, FunctionInfo]:
        return self._functions

    def ctors_of(self, type_name: str) -> list[CtrInfo]:
        """Constructors of a type in declaration order."""
        return [self._ctors[c] for c in self._types[type_name].ctors]

    def resolve_ctr(self, label: str) -> list[CtrInfo]:
        """Candidate constructors for a qualified or unqualified label."""
        if label in self._ctors:
            return [self._ctors[label]]
        return [self._ctors[c] for c in self._by_short.get(label, ())]

    def function(self, name: str) -> FunctionInfo | None:
        return self._functions.get(name)


class RegistryBuilder:
    """Collects declarations in source order and reports duplicates."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("Registry")
        self.diagnostics: list[Diagnostic] = []
        self._types: dict[str, TypeInfo] = {}
        self._ctors: dict[str, CtrInfo] = {}
        self._functions: dict[str, FunctionInfo] = {}
        for info, ctors in BUILTIN_TYPES:
            self._types[info.name] = info
            for ctr in ctors:
                self._ctors[ctr.name] = ctr

    def _name_error(self, message: str, span: Span | None) -> None:
        self.diagnostics.append(make_error(ErrorKind.NAME, message, span))

    def add_program(self, program: Program) -> None:
        for decl in program.declarations:
            if isinstance(decl, TypeDecl):
                self.add_type(decl)
            elif isinstance(decl, (FunDef, ImpDef)):
                self.add_function(decl)

    def add_type(self, decl: TypeDecl) -> None:
        if decl.name in self._types:
            self._name_error(f"duplicate type '{decl.name}'", decl.span)
            return
        ctors: list[CtrInfo] = []
        for ctr in decl.ctors:
            if any(c.name == ctr.name for c in ctors):
                self._name_error(
                    f"duplicate constructor '{ctr.name}' in type '{decl.name}'", ctr.span)
                return
            if ctr.name in self._ctors:
                self._name_error(f"constructor '{ctr.name}' is already defined", ctr.span)
                return
            seen: set[str] = set()
            for f in ctr.fields:
                if f.name in seen:
                    self._name_error(
                        f"duplicate field '{f.name}' in constructor '{ctr.name}'", f.span)
                    return
                seen.add(f.name)
            fields = tuple(FieldInfo(f.name, f.recursive) for f in ctr.fields)
            ctors.append(CtrInfo(ctr.name, decl.name, fields))
        self._types[decl.name] = TypeInfo(
            decl.name, tuple(c.name for c in ctors), decl.is_object, decl.span,
        )
        for c in ctors:
            self._ctors[c.name] = c

    def add_function(self, decl: FunDef | ImpDef) -> None:
        if decl.name in self._functions:
            self._name_error(f"duplicate definition of function '{decl.name}'", decl.span)
            return
        if isinstance(decl, ImpDef):
            params: tuple[str | None, ...] = tuple(decl.params)
        else:
            params = tuple(
                p.name if isinstance(p, VarPattern) else None
                for p in decl.rules[0].patterns
            )
        self._functions[decl.name] = FunctionInfo(decl.name, params, decl.span)

    def build(self) -> Registry:
        functions: dict[str, FunctionInfo] = {}
        for name, info in self._functions.items():
            if name in self._ctors:
                self._name_error(
                    f"function '{name}' has the same name as a constructor", info.span)
                continue
            functions[name] = info
        self._logger.debug("registry: %d types, %d constructors, %d functions",
                           len(self._types), len(self._ctors), len(functions))
        return Registry(self._types, self._ctors, functions)


def build_registry(programs: Iterable[Program]) -> tuple[Registry, list[Diagnostic]]:
    """Pass 1: build the registry over every parsed unit."""
    builder = RegistryBuilder()
    for program in programs:
        builder.add_program(program)
    registry = builder.build()
    return registry, builder.diagnostics
