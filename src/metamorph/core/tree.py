"""
Tree Handler.

Parses Python source into a LibCST `Module` and renders trees (or single
nodes) back to text. LibCST is a concrete syntax tree: comments and formatting
are kept as trivia on the nodes, so rendering an unmodified parse reproduces
the input exactly and marker comments survive the round trip.

The module also defines what a *declaration unit* is: a function defined at
module level, or a method defined directly in a module-level class body. These
are the units that the external transformation strategy processes, in source
order, and that the complexity analyzer counts.
"""

import ast
from typing import Iterator, List, Optional, Sequence

import libcst as cst

from metamorph.core.errors import ParseError, RenderError


class TreeHandler:
  """
  Parses and renders Python source.

  One handler instance is shared by the engine and the strategies of a rewrite
  so that every sub-render uses the same module conventions (indentation and
  newline style) as the file being rewritten.
  """

  def __init__(self) -> None:
    self._context: cst.Module = cst.parse_module("")

  def parse(self, text: str) -> cst.Module:
    """
    Parses source text into a Module.

    Args:
        text (str): Python source code.

    Returns:
        cst.Module: The parsed tree.

    Raises:
        ParseError: If the text is not valid Python.
    """
    module = self.parse_fragment(text)
    self._context = module
    return module

  def parse_fragment(self, text: str) -> cst.Module:
    """
    Parses a standalone fragment (e.g. a service answer) without adopting its conventions.

    Raises:
        ParseError: If the text is not valid Python.
    """
    try:
      return cst.parse_module(text)
    except cst.ParserSyntaxError as e:
      raise ParseError(" ".join(str(e).split())) from e

  def render(self, module: cst.Module) -> str:
    """
    Renders a whole Module back to text.

    Raises:
        RenderError: If code generation fails (e.g. an invalid synthesized node).
    """
    try:
      return module.code
    except Exception as e:
      raise RenderError(str(e)) from e

  def render_node(self, node: cst.CSTNode) -> str:
    """
    Renders a single node standalone, at zero indentation.

    Args:
        node (cst.CSTNode): The node to render, typically a FunctionDef.

    Returns:
        str: The node's source code.

    Raises:
        RenderError: If code generation fails.
    """
    try:
      return self._context.code_for_node(node)
    except Exception as e:
      raise RenderError(f"failed to extract source for {type(node).__name__}: {e}") from e

  def signature_of(self, func: cst.FunctionDef) -> str:
    """
    Returns a whitespace-insensitive canonical form of a function signature.

    Covers the `async` flag, name, parameter list (with annotations and
    defaults) and return annotation. Decorators and the body are excluded.
    """
    stub = func.with_changes(
      body=cst.SimpleStatementSuite(body=[cst.Expr(cst.Ellipsis())]),
      leading_lines=[],
      decorators=[],
      lines_after_decorators=[],
    )
    code = self.render_node(stub)
    try:
      parsed = ast.parse(code).body[0]
    except SyntaxError as e:
      raise RenderError(f"failed to normalise signature of {func.name.value}: {e}") from e
    return ast.unparse(parsed).splitlines()[0]


def iter_declaration_units(module: cst.Module) -> Iterator[cst.FunctionDef]:
  """
  Yields module-level functions and methods of module-level classes in source order.
  """
  for stmt in module.body:
    if isinstance(stmt, cst.FunctionDef):
      yield stmt
    elif isinstance(stmt, cst.ClassDef) and isinstance(stmt.body, cst.IndentedBlock):
      for member in stmt.body.body:
        if isinstance(member, cst.FunctionDef):
          yield member


def find_first_function(module: cst.Module) -> Optional[cst.FunctionDef]:
  """
  Finds the first function in a parsed fragment.

  Declaration units are preferred; otherwise any FunctionDef in the tree is used
  (a fragment may wrap the function in a class or conditional).
  """
  for func in iter_declaration_units(module):
    return func
  found: List[cst.FunctionDef] = []

  class _Finder(cst.CSTVisitor):
    def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
      found.append(node)
      return False

  module.visit(_Finder())
  return found[0] if found else None


def _is_docstring(stmt: cst.CSTNode) -> bool:
  if isinstance(stmt, cst.SimpleStatementLine) and len(stmt.body) == 1:
    expr = stmt.body[0]
    return isinstance(expr, cst.Expr) and isinstance(expr.value, (cst.SimpleString, cst.ConcatenatedString))
  return False


def _is_ellipsis(stmt: cst.CSTNode) -> bool:
  if isinstance(stmt, cst.SimpleStatementLine) and len(stmt.body) == 1:
    stmt = stmt.body[0]
  return isinstance(stmt, cst.Expr) and isinstance(stmt.value, cst.Ellipsis)


def has_body(func: cst.FunctionDef) -> bool:
  """
  Checks whether a function carries an implementation.

  A function whose body is only `...` (optionally after a docstring) is a
  declaration stub, as used for `typing.overload` and protocol members.
  """
  statements: Sequence[cst.CSTNode] = func.body.body
  if statements and _is_docstring(statements[0]):
    statements = statements[1:]
  return not (len(statements) == 1 and _is_ellipsis(statements[0]))


def add_leading_comment(node: cst.FunctionDef, text: str) -> cst.FunctionDef:
  """
  Appends a comment line directly above a function (above its decorators).

  Args:
      node (cst.FunctionDef): The function to mark.
      text (str): Comment text. A leading '# ' is added when missing; newlines are flattened.

  Returns:
      cst.FunctionDef: The marked function.
  """
  return node.with_changes(leading_lines=[*node.leading_lines, cst.EmptyLine(comment=cst.Comment(as_comment(text)))])


def as_comment(text: str) -> str:
  """Turns arbitrary text into a single valid comment line."""
  flat = " ".join(text.split())
  if not flat.startswith("#"):
    flat = f"# {flat}"
  return flat
