"""
Build-script model: the statements and values the assembler reads,
lowered from a tree-sitter syntax tree.

Both DSLs map onto the same records:

  Kotlin  ``android { compileSdk = 34 }``   →  Block("android", [Assignment])
  Groovy  ``android { compileSdkVersion 34 }`` →  Block("android", [Call])

Expressions the checker does not interpret (string concatenation,
lambdas, conditions) become ``Opaque`` values that keep their leading
operand, so real-world scripts still assemble.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from tree_sitter import Node


# ── Values ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class NullValue:
    pass


@dataclass(frozen=True)
class Reference:
    """A dotted name such as ``flutter.minSdkVersion``."""
    path: str


@dataclass(frozen=True)
class CallValue:
    name: str
    args: Tuple["Value", ...] = ()
    kwargs: Tuple[Tuple[str, "Value"], ...] = ()


@dataclass(frozen=True)
class IndexValue:
    """``target["key"]``, typically a ``java.util.Properties`` lookup."""
    target: str
    key: str


@dataclass(frozen=True)
class Opaque:
    """An expression the checker does not interpret.

    ``inner`` keeps the leading operand when one was recognised, e.g.
    the ``IndexValue`` in ``props["storeFile"]?.let { file(it) }``.
    """
    text: str
    inner: Optional["Value"] = None


Value = Union[StringValue, IntValue, BoolValue, NullValue, Reference,
              CallValue, IndexValue, Opaque]


# ── Statements ───────────────────────────────────────────────────────────────

@dataclass
class Assignment:
    target: str
    value: Value
    line: int
    op: str = "="
    local: bool = False


@dataclass
class Call:
    name: str
    args: List[Value]
    line: int
    kwargs: Dict[str, Value] = field(default_factory=dict)
    modifiers: Dict[str, Value] = field(default_factory=dict)


@dataclass
class Block:
    name: str
    line: int
    args: List[Value] = field(default_factory=list)
    body: List["Statement"] = field(default_factory=list)

    @property
    def label(self) -> str:
        """Container-element name: ``create("release") {}`` → ``release``."""
        if self.name in _NAMED_ELEMENT_FACTORIES and self.args:
            first = self.args[0]
            if isinstance(first, StringValue):
                return first.value
        return self.name

    def blocks(self, name: Optional[str] = None) -> List["Block"]:
        return [s for s in self.body if isinstance(s, Block) and (name is None or s.name == name)]

    def block(self, name: str) -> Optional["Block"]:
        found = self.blocks(name)
        return found[0] if found else None

    def walk(self) -> Iterator["Statement"]:
        for stmt in self.body:
            yield stmt
            if isinstance(stmt, Block):
                yield from stmt.walk()


Statement = Union[Assignment, Call, Block]

_NAMED_ELEMENT_FACTORIES = frozenset({"create", "getByName", "register", "maybeCreate", "named"})


@dataclass
class BuildScript:
    """Root of a lowered build script."""
    body: List[Statement] = field(default_factory=list)

    def blocks(self, name: Optional[str] = None) -> List[Block]:
        return [s for s in self.body if isinstance(s, Block) and (name is None or s.name == name)]

    def block(self, name: str) -> Optional[Block]:
        found = self.blocks(name)
        return found[0] if found else None

    def walk(self) -> Iterator[Statement]:
        for stmt in self.body:
            yield stmt
            if isinstance(stmt, Block):
                yield from stmt.walk()


# ── Node kinds (tree-sitter-kotlin / tree-sitter-groovy) ─────────────────────

_SKIPPED = frozenset({"import", "package_header", "import_declaration", "package_declaration"})
_WRAPPERS = frozenset({"expression_statement", "parenthesized_expression"})
_CALLS = frozenset({"call_expression", "method_invocation", "juxt_function_call"})
_ARGUMENT_LISTS = frozenset({"value_arguments", "argument_list"})
_LAMBDAS = frozenset({"annotated_lambda", "lambda_literal", "closure"})
_BODIES = frozenset({"lambda_literal", "closure", "block"})
_ASSIGNMENTS = frozenset({"assignment", "assignment_expression"})
_DECLARATIONS = frozenset({"property_declaration", "local_variable_declaration"})
_CONDITIONALS = frozenset({"if_expression", "if_statement"})
_STRINGS = frozenset({"string_literal", "character_literal", "multiline_string_literal"})
_INTEGERS = frozenset({"number_literal", "decimal_integer_literal"})
_FLOATS = frozenset({"float_literal", "decimal_floating_point_literal"})
_INDEXES = frozenset({"index_expression", "array_access"})

_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*$")
_SPACE_RE = re.compile(r"\s+")
_ESCAPE_RE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'", "$": "$"}


def _text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _squashed(node: Node) -> str:
    return _SPACE_RE.sub("", _text(node))


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _named(node: Node) -> List[Node]:
    """Named children without comments."""
    return [c for c in node.named_children if not c.is_extra]


def _string_content(node: Node) -> str:
    text = _text(node)
    for quote in ('"""', "'''", '"', "'"):
        if len(text) >= 2 * len(quote) and text.startswith(quote) and text.endswith(quote):
            body = text[len(quote):-len(quote)]
            if len(quote) == 3:
                return body
            return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)
    return text


# ── Values ───────────────────────────────────────────────────────────────────

def _call_parts(node: Node) -> Tuple[str, List[Node], Optional[Node]]:
    """Callee name, argument nodes and trailing lambda of a call node."""
    if node.type == "call_expression":
        callee, *rest = _named(node)
        if callee.type == "call_expression":
            # create("release") { ... }: arguments on the inner call
            name, args, _ = _call_parts(callee)
        else:
            name, args = _squashed(callee), []
        trailing = None
        for child in rest:
            if child.type in _ARGUMENT_LISTS:
                args = _named(child)
            elif child.type in _LAMBDAS:
                trailing = child
        return name, args, trailing

    name = _text(node.child_by_field_name("name"))
    receiver = node.child_by_field_name("object")
    if receiver is not None:
        name = f"{_squashed(receiver)}.{name}"
    arguments = node.child_by_field_name("arguments")
    if arguments is None:
        arguments = node.child_by_field_name("args")
    args = _named(arguments) if arguments is not None else []
    return name, args, node.child_by_field_name("body")


def _arguments(nodes: List[Node]) -> Tuple[List[Value], Dict[str, Value]]:
    args: List[Value] = []
    kwargs: Dict[str, Value] = {}
    for arg in nodes:
        if arg.type == "value_argument":
            parts = _named(arg)
            if len(parts) == 2 and any(c.type == "=" for c in arg.children):
                kwargs[_text(parts[0])] = lower_value(parts[1])
            elif parts:
                args.append(lower_value(parts[-1]))
        elif arg.type == "map_item":
            key = arg.child_by_field_name("key")
            value = arg.child_by_field_name("value")
            if key is not None and value is not None:
                kwargs[_text(key)] = lower_value(value)
        elif arg.type not in _LAMBDAS:
            args.append(lower_value(arg))
    return args, kwargs


def _leading_value(node: Node) -> Optional[Value]:
    children = _named(node)
    if not children:
        return None
    value = lower_value(children[0])
    return value.inner if isinstance(value, Opaque) else value


def lower_value(node: Node) -> Value:
    """Lower one expression node to a Value."""
    kind = node.type
    text = _text(node)

    if kind in _STRINGS:
        return StringValue(_string_content(node))
    if kind in _INTEGERS:
        digits = text.rstrip("lLuU").replace("_", "")
        return IntValue(int(digits)) if digits.isdigit() else StringValue(text)
    if kind in _FLOATS:
        return StringValue(text)
    # kotlin-ng has no keyword nodes for these; Groovy has true/false/null_literal
    if text in ("true", "false"):
        return BoolValue(text == "true")
    if text == "null":
        return NullValue()

    if kind in _CONDITIONALS:
        return Opaque(" ".join(text.split()))
    if kind in _WRAPPERS or kind == "as_expression":
        # `(x)` and `x as String` are transparent
        children = _named(node)
        if children:
            return lower_value(children[0])

    if kind in _INDEXES:
        parts = _named(node)
        if len(parts) == 2 and parts[1].type in _STRINGS and _NAME_RE.match(_squashed(parts[0])):
            return IndexValue(_squashed(parts[0]), _string_content(parts[1]))

    if kind in _CALLS:
        name, args, trailing = _call_parts(node)
        if trailing is None and _NAME_RE.match(name):
            values, kwargs = _arguments(args)
            return CallValue(name, tuple(values), tuple(kwargs.items()))

    squashed = _squashed(node)
    if kind not in _CALLS and _NAME_RE.match(squashed):
        return Reference(squashed)
    return Opaque(" ".join(text.split()), _leading_value(node))


# ── Statements ───────────────────────────────────────────────────────────────

def _call_statement(node: Node) -> Statement:
    name, arg_nodes, trailing = _call_parts(node)
    args, kwargs = _arguments(arg_nodes)
    if trailing is not None:
        return Block(name, _line(node), args=args, body=lower_body(trailing))
    return Call(name, args, _line(node), kwargs=kwargs)


def _infix_statement(node: Node) -> Optional[Statement]:
    """``id("x") version "1.0" apply false``: modifiers on the leading call."""
    parts = _named(node)
    stmt = lower_statement(parts[0]) if parts else None
    if isinstance(stmt, Call) and len(parts) == 3:
        stmt.modifiers[_text(parts[1])] = lower_value(parts[2])
    return stmt


def _declaration(node: Node) -> Optional[Assignment]:
    if node.type == "local_variable_declaration":
        declarator = node.child_by_field_name("declarator")
        if declarator is None:
            return None
        name = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
    else:
        variable = next((c for c in _named(node) if c.type == "variable_declaration"), None)
        name = _named(variable)[0] if variable is not None else None
        value = None
        seen_equals = False
        for child in node.children:
            if child.type == "=":
                seen_equals = True
            elif seen_equals and child.is_named and not child.is_extra:
                value = child
                break
    if name is None or value is None:
        return None
    return Assignment(_text(name), lower_value(value), _line(node), local=True)


def _assignment(node: Node) -> Optional[Assignment]:
    left = node.child_by_field_name("left")
    right = node.child_by_field_name("right")
    if left is None or right is None:
        return None
    op = node.child_by_field_name("operator")
    return Assignment(_squashed(left), lower_value(right), _line(node), op=_text(op) if op is not None else "=")


def _branch(node: Node) -> List[Statement]:
    if node.type in _WRAPPERS:
        children = _named(node)
        return _branch(children[0]) if len(children) == 1 else []
    if node.type in _BODIES:
        return lower_body(node)
    if node.type in _CONDITIONALS:
        return _conditional_body(node)
    stmt = lower_statement(node)
    return [stmt] if stmt is not None else []


def _conditional_body(node: Node) -> List[Statement]:
    """Statements of every branch of an if/else chain."""
    condition = node.child_by_field_name("condition")
    body: List[Statement] = []
    for child in _named(node):
        if condition is not None and child == condition:
            continue
        body.extend(_branch(child))
    return body


def lower_statement(node: Node) -> Optional[Statement]:
    """Lower one statement node; None for statements the model ignores."""
    kind = node.type
    if kind in _WRAPPERS:
        children = _named(node)
        return lower_statement(children[0]) if len(children) == 1 else None
    if kind in _ASSIGNMENTS:
        return _assignment(node)
    if kind in _DECLARATIONS:
        return _declaration(node)
    if kind in _CONDITIONALS:
        return Block("if", _line(node), body=_conditional_body(node))
    if kind in _CALLS:
        return _call_statement(node)
    if kind == "infix_expression":
        return _infix_statement(node)
    return None


def lower_body(node: Node) -> List[Statement]:
    """Lower the statements directly inside a file, block or lambda."""
    body: List[Statement] = []
    for child in _named(node):
        if child.type in _SKIPPED:
            continue
        if child.type in _BODIES:
            body.extend(lower_body(child))
            continue
        stmt = lower_statement(child)
        if stmt is not None:
            body.append(stmt)
    return body


def lower_tree(root: Node) -> BuildScript:
    """Lower a ``source_file`` / ``program`` root node to a BuildScript."""
    return BuildScript(body=lower_body(root))
