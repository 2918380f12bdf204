"""Behavior hydration for executable choice options.

An executable option is a plain Python function declared by the user. To send
it to the optimizer the client extracts the function's declaration from its
source file and ships it as text together with its qualified name:

    {"name": "my_pkg.strategies.greedy", "string": "def greedy(optimization, *args): ..."}

On the way back the optimizer may return options the client never declared.
Those are "hydrated": the fragment is executed inside a namespace owned by the
session and the resulting function is picked out by its simple name.

Fragments are re-interpreted in isolation, so an option function must only
depend on builtins, its arguments and the modules made available to the
hydrator (the ``autocode`` package plus any configured ``imports``). Closures
over local variables cannot be transmitted.

Hydrated code runs with full trust in-process. There is no sandbox.
"""

import ast
import builtins
import copy
import importlib
import inspect
import itertools
import linecache
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from .errors import HydrationError
from .protocols import OptionFunction

logger = logging.getLogger(__name__)

HYDRATED_MODULE = "autocode.hydrated"

_fragment_counter = itertools.count(1)


def function_name(function: Callable) -> str:
    """Return the fully qualified name used on the wire, e.g. 'pkg.mod.func'."""
    function = inspect.unwrap(function)
    module = getattr(function, "__module__", None) or HYDRATED_MODULE
    qualname = getattr(function, "__qualname__", None) or getattr(function, "__name__", None)
    if not qualname:
        raise HydrationError(f"Cannot name callable {function!r}")
    return f"{module}.{qualname}"


def function_source(function: Callable) -> str:
    """Extract the declaration of ``function`` as a standalone source fragment.

    The callable's code object gives its file and first line. The file is
    parsed and the ``def`` starting on that line is pretty-printed without its
    decorators, so the fragment defines exactly one function.

    Raises:
        HydrationError: For lambdas, builtins, or when no matching declaration is found
    """
    function = inspect.unwrap(function)
    code = getattr(function, "__code__", None)
    if code is None:
        raise HydrationError(f"{function!r} is not a Python function")
    simple_name = function.__name__
    if simple_name == "<lambda>":
        raise HydrationError("Lambdas cannot be transmitted, declare a named function")

    try:
        file_name = inspect.getsourcefile(function)
    except TypeError as e:
        raise HydrationError(f"No source file for {simple_name}") from e
    lines = linecache.getlines(file_name) if file_name else []
    if not lines:
        raise HydrationError(f"Source not available for {simple_name} ({file_name})")

    try:
        tree = ast.parse("".join(lines), filename=file_name)
    except SyntaxError as e:
        raise HydrationError(f"Cannot parse {file_name}: {e}") from e

    first_line = code.co_firstlineno
    for node in ast.walk(tree):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if node.name != simple_name:
            continue
        start = min([node.lineno] + [d.lineno for d in node.decorator_list])
        if start == first_line:
            declaration = copy.copy(node)
            declaration.decorator_list = []
            return ast.unparse(declaration)

    raise HydrationError(f"function not found: {simple_name} at {file_name}:{first_line}")


class Hydrator:
    """Dynamic evaluator that turns source fragments back into callables.

    Each session owns one hydrator. Its namespace plays the role of a module
    into which every fragment is executed, so fragments hydrated in the same
    session can see each other.

    Args:
        imports: Module names to make available to fragments (``import a.b``
            binds ``a``, as a regular import statement would)
        registry: Pre-linked strategies keyed by fully qualified name. A name
            found here is returned as-is and its fragment is never executed.
    """

    def __init__(
        self,
        imports: Iterable[str] = (),
        registry: Optional[Mapping[str, OptionFunction]] = None,
    ):
        import autocode

        self.registry: Dict[str, OptionFunction] = dict(registry or {})
        self.namespace: Dict[str, Any] = {
            "__builtins__": builtins,
            "__name__": HYDRATED_MODULE,
            "autocode": autocode,
        }
        for module_name in imports:
            try:
                importlib.import_module(module_name)
                top_level = module_name.partition(".")[0]
                self.namespace[top_level] = importlib.import_module(top_level)
            except ImportError as e:
                raise HydrationError(f"Cannot import {module_name} for hydration: {e}") from e

    def hydrate(self, name: str, source: Optional[str]) -> OptionFunction:
        """Load ``source`` and return the function it declares.

        Args:
            name: Qualified name sent by the optimizer; the last dotted
                segment is the symbol looked up after execution
            source: Fragment declaring that function

        Returns:
            The live callable

        Raises:
            HydrationError: On syntax errors, errors raised while executing the
                fragment, or when the fragment does not define the symbol
        """
        if name in self.registry:
            logger.debug("Using registered strategy for %s", name)
            return self.registry[name]
        if not source:
            raise HydrationError(f"No source fragment for unknown option function {name}")

        simple_name = name.rsplit(".", 1)[-1]
        file_name = f"<hydrated {name} #{next(_fragment_counter)}>"
        try:
            code = compile(source, file_name, "exec")
        except SyntaxError as e:
            raise HydrationError(f"Invalid fragment for {name}: {e}") from e

        # Keep the text reachable for tracebacks and for function_source()
        linecache.cache[file_name] = (len(source), None, source.splitlines(True), file_name)

        previous = self.namespace.get(simple_name)
        try:
            exec(code, self.namespace)
        except Exception as e:
            raise HydrationError(f"Evaluating fragment for {name} failed: {e}") from e

        function = self.namespace.get(simple_name)
        if function is None or function is previous or not callable(function):
            raise HydrationError(f"symbol not found after evaluation: {simple_name}")

        # Keep the optimizer's qualified name so the option is re-sent under it
        module_name, _, _ = name.rpartition(".")
        if module_name and inspect.isfunction(function):
            function.__module__ = module_name

        logger.debug("Hydrated %s from %s", name, file_name)
        return function


__all__ = [
    "HYDRATED_MODULE",
    "function_name",
    "function_source",
    "Hydrator",
]
