"""
Tree-sitter Gradle build-script parser.

Parses ``build.gradle.kts`` with the tree-sitter Kotlin grammar and
``build.gradle`` with the tree-sitter Groovy grammar, reports parse
status, errors and the concrete syntax tree, and lowers an error-free
tree to the ``BuildScript`` model the assembler reads.
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from importlib.metadata import version
from pathlib import Path
from typing import Dict, List, Optional

import tree_sitter_groovy as tsgroovy
import tree_sitter_kotlin as tskotlin
from tree_sitter import Language, Node, Parser

from build_descriptor.core.errors import BuildScriptSyntaxError
from build_descriptor.core.script_model import BuildScript, lower_tree

logger = logging.getLogger(__name__)

KOTLIN = "kotlin"
GROOVY = "groovy"

# ── Language / parser singletons ─────────────────────────────────────────────

_LANGUAGES = {
    KOTLIN: Language(tskotlin.language()),
    GROOVY: Language(tsgroovy.language()),
}
_GRAMMAR_DISTRIBUTIONS = {
    KOTLIN: "tree-sitter-kotlin",
    GROOVY: "tree-sitter-groovy",
}
_PARSERS: Dict[str, Parser] = {}


def _get_parser(dialect: str) -> Parser:
    """Return a cached tree-sitter parser for *dialect*."""
    parser = _PARSERS.get(dialect)
    if parser is None:
        parser = _PARSERS[dialect] = Parser(_LANGUAGES[dialect])
    return parser


def _parser_version_string(dialect: str) -> str:
    """Runtime + grammar version for provenance."""
    grammar = _GRAMMAR_DISTRIBUTIONS[dialect]
    try:
        ts_version = version("tree-sitter")
    except Exception:
        ts_version = "unknown"

    try:
        grammar_version = version(grammar)
    except Exception:
        grammar_version = "unknown"

    return f"tree-sitter=={ts_version}; {grammar}=={grammar_version}"


def dialect_for(build_file: str) -> str:
    """``build.gradle`` is Groovy; ``.kts`` and anything else is Kotlin."""
    return GROOVY if build_file.endswith(".gradle") else KOTLIN


# ── Groovy command calls ─────────────────────────────────────────────────────
#
# tree-sitter-groovy accepts only literals and names as command-call
# arguments (`minSdkVersion 21`, `versionName flutterVersionName`).  Lines
# such as `signingConfig signingConfigs.release` are rewritten to the
# equivalent `signingConfig(signingConfigs.release)` before parsing.
# Line numbers are unchanged.

_GROOVY_KEYWORDS = frozenset({
    "def", "if", "else", "for", "while", "do", "switch", "case", "return",
    "throw", "try", "catch", "finally", "new", "import", "package", "assert",
})
_COMMAND_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<name>[A-Za-z_$][\w$]*)(?P<space>[ \t]+)(?P<rest>\S.*)$"
)
_STRING_RE = re.compile(r"""'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*\"""")
_BRACKET_RE = re.compile(r"\([^()\[\]]*\)|\[[^()\[\]]*\]")
_OPERATOR_RE = re.compile(r"\s*(==|!=|<=|>=|&&|\|\||\?:|\?\.|\*\.|[-+*/%?:<>.,!])\s*")
_ARG_START_RE = re.compile(r"^(?:[\w$#!]|-\d)")
_SIMPLE_ARG_RE = re.compile(r"^(?:[A-Za-z_$][\w$]*:)?(?:S+|-?\d[\w.]*|[A-Za-z_$][\w$]*)$")
_TRIPLE_QUOTES = ("'''", '"""')


def _mask(code: str) -> str:
    """Blank out strings (``S``) and bracketed groups (``#``), keeping length."""
    masked = _STRING_RE.sub(lambda m: "S" * len(m.group()), code)
    while True:
        reduced = _BRACKET_RE.sub(lambda m: "#" * len(m.group()), masked)
        if reduced == masked:
            return masked
        masked = reduced


def _parenthesize_line(line: str) -> Optional[str]:
    m = _COMMAND_RE.match(line)
    if m is None or m.group("name") in _GROOVY_KEYWORDS:
        return None
    rest = m.group("rest")
    masked = _mask(rest)
    cut = min((masked.find(c) for c in ("//", "/*") if c in masked), default=len(masked))
    code, masked = rest[:cut].rstrip(), masked[:cut].rstrip()

    if not masked or not _ARG_START_RE.match(masked):
        return None
    if any(c in masked for c in "{}()[];'\"") or "->" in masked:
        return None
    if masked[-1] in ",+-*/%&|?:.=<>!":
        return None

    collapsed = _OPERATOR_RE.sub(r"\1", masked)
    if re.search(r"\s", collapsed):
        # command chain: `id 'x' version '1.0' apply false`
        return None
    if all(_SIMPLE_ARG_RE.match(piece) for piece in collapsed.split(",")):
        return None

    space = m.group("space")
    return f"{m.group('indent')}{m.group('name')}({space[1:]}{code}){rest[len(code):]}"


def parenthesize_command_calls(text: str) -> str:
    """
    Rewrite Groovy command calls whose arguments are expressions.

    ``keyAlias keystoreProperties['keyAlias']`` becomes
    ``keyAlias(keystoreProperties['keyAlias'])``.  Literal and plain-name
    arguments, command chains, assignments, keyword statements and lines
    inside triple-quoted strings are left alone.
    """
    lines = text.split("\n")
    in_multiline = False
    for i, line in enumerate(lines):
        if sum(line.count(q) for q in _TRIPLE_QUOTES) % 2:
            in_multiline = not in_multiline
            continue
        if in_multiline:
            continue
        rewritten = _parenthesize_line(line)
        if rewritten is not None:
            lines[i] = rewritten
    return "\n".join(lines)


# ── Data classes ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseError:
    """A single error node found in the parse tree."""
    line: int        # 1-based
    column: int      # 1-based
    message: str


@dataclass
class ParseResult:
    """Result of parsing one build file."""
    tree: object                         # tree_sitter.Tree
    source_bytes: bytes                  # bytes handed to the parser
    build_file: str                      # as supplied (may be relative)
    file_hash: str                       # sha256 of raw text
    dialect: str                         # "kotlin" | "groovy"
    parser_version: str
    parse_status: str                    # "OK" | "ERROR"
    parse_errors: List[ParseError] = field(default_factory=list)
    script: Optional[BuildScript] = None  # None when parse_status == "ERROR"


# ── Error collection ─────────────────────────────────────────────────────────

def _collect_errors(node: Node, errors: List[ParseError]) -> None:
    """Walk the tree and collect ERROR / MISSING nodes."""
    if not node.has_error and not node.is_missing:
        return
    if node.type == "ERROR" or node.is_missing:
        row, col = node.start_point
        msg = f"MISSING({node.type})" if node.is_missing else "ERROR"
        errors.append(ParseError(line=row + 1, column=col + 1, message=msg))
    for child in node.children:
        _collect_errors(child, errors)


# ── Public API ───────────────────────────────────────────────────────────────

def parse_build_text(
    text: str,
    build_file: str = "<memory>",
    dialect: Optional[str] = None,
) -> ParseResult:
    """
    Parse build-script text, capturing syntax errors in the result.

    Parameters
    ----------
    text : str
        Script contents.
    build_file : str
        Name reported for the script; also picks the dialect.
    dialect : str, optional
        ``"kotlin"`` or ``"groovy"``; overrides the file-name choice.
    """
    dialect = dialect or dialect_for(build_file)
    file_hash = hashlib.sha256(text.encode("utf-8")).hexdigest()
    if dialect == GROOVY:
        text = parenthesize_command_calls(text)
    source_bytes = text.encode("utf-8")

    tree = _get_parser(dialect).parse(source_bytes)

    errors: List[ParseError] = []
    _collect_errors(tree.root_node, errors)

    script = None
    if errors:
        first = errors[0]
        logger.warning(
            "%d syntax error(s) in %s, first at %d:%d (%s)",
            len(errors), build_file, first.line, first.column, first.message,
        )
    else:
        script = lower_tree(tree.root_node)

    return ParseResult(
        tree=tree,
        source_bytes=source_bytes,
        build_file=build_file,
        file_hash=file_hash,
        dialect=dialect,
        parser_version=_parser_version_string(dialect),
        parse_status="ERROR" if errors else "OK",
        parse_errors=errors,
        script=script,
    )


def parse_build_script(text: str, dialect: str = KOTLIN) -> BuildScript:
    """Parse and lower build-script *text*.  Raises ``BuildScriptSyntaxError``."""
    result = parse_build_text(text, dialect=dialect)
    if result.script is None:
        first = result.parse_errors[0]
        raise BuildScriptSyntaxError(first.line, first.column, first.message)
    return result.script


def parse_build_file(path: Path) -> ParseResult:
    """
    Read and parse a ``build.gradle`` / ``build.gradle.kts`` file.

    Parameters
    ----------
    path : Path
        Path to the build script.

    Returns
    -------
    ParseResult
        The CST, lowered script (``None`` on syntax error), sha256 of the
        file, parser version, parse status and any errors.
    """
    text = path.read_text(encoding="utf-8")
    return parse_build_text(text, build_file=str(path))
