"""
Reactive Kernel — Runtime

A small dataflow runtime in the shape of the Observable runtime:

  Runtime    owns modules, builtins and the dependency graph
  Module     a named scope of variables
  Variable   one reactive binding: name, input names, definition

Recomputation is synchronous and dependency-ordered. A variable is
recomputed when its definition changed or when any resolved input was
recomputed. Failures never escape the runtime: they are stored on the
variable and delivered to its observer as rejected().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from reactive.types import Observer, RuntimeDisposed, VariableError, is_valid_name

logger = logging.getLogger(__name__)

# Resolution markers for names that are not a single live variable
_BUILTIN = object()
_DUPLICATE = object()
_CIRCULAR = ("circular",)


class Runtime:
    """Owns every module and variable; recomputes the graph after each change."""

    def __init__(self, builtins: dict[str, Any] | None = None) -> None:
        self._builtins: dict[str, Any] = dict(builtins or {})
        self._modules: list[Module] = []
        self._defined_modules: dict[Callable, Module] = {}
        self._variables: list[Variable] = []
        self._disposed = False
        self._computing = False
        self._dirty = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def builtin(self, name: str) -> Any:
        """Return a builtin value. Raises KeyError if absent."""
        return self._builtins[name]

    def module(self, define: Callable | None = None, observer: Callable | None = None) -> Module:
        """
        Create a module.

        If `define` is given it is called as define(module, observer) to
        populate the module, and the module is cached per define callable
        so importing the same notebook twice shares one module.
        """
        self._check()
        if define is not None and define in self._defined_modules:
            return self._defined_modules[define]

        module = Module(self)
        self._modules.append(module)
        if define is not None:
            self._defined_modules[define] = module
            define(module, observer)
        return module

    def dispose(self) -> None:
        """Release every module and variable. Further use raises RuntimeDisposed."""
        if self._disposed:
            return
        self._disposed = True
        for variable in self._variables:
            variable._detach()
        self._variables.clear()
        self._modules.clear()
        self._defined_modules.clear()
        logger.debug("runtime: disposed")

    # -- graph maintenance --

    def _check(self) -> None:
        if self._disposed:
            raise RuntimeDisposed("runtime has been disposed")

    def _attach(self, variable: Variable) -> None:
        if variable not in self._variables:
            self._variables.append(variable)

    def _detach(self, variable: Variable) -> None:
        if variable in self._variables:
            self._variables.remove(variable)

    def _resolve(self, module: Module, name: str) -> Any:
        variables = module._scope.get(name)
        if variables:
            return variables[0] if len(variables) == 1 else _DUPLICATE
        if name in self._builtins:
            return _BUILTIN
        return None

    def _recompute(self) -> None:
        """Bring every variable up to date. Re-entrant calls are folded into one more pass."""
        if self._disposed:
            return
        if self._computing:
            self._dirty = True
            return

        self._computing = True
        try:
            self._dirty = True
            while self._dirty:
                self._dirty = False
                self._compute_pass()
        finally:
            self._computing = False

    def _compute_pass(self) -> None:
        variables = list(self._variables)
        edges = {v: [d for d in v._dependencies() if isinstance(d, Variable)] for v in variables}

        order, leftover = _toposort(variables, edges, done=set())

        # Whatever Kahn's algorithm could not order sits on or behind a cycle
        circular = {v for v in leftover if _reaches(v, v, edges, leftover)}
        for variable in order:
            variable._compute()
        for variable in leftover:
            if variable in circular and (variable._stale or variable._signature is not _CIRCULAR):
                variable._stale = False
                variable._signature = _CIRCULAR
                variable._fail(VariableError(f"{variable.name or 'variable'} has a circular definition"))

        behind, _ = _toposort([v for v in leftover if v not in circular], edges, done=set(order) | circular)
        for variable in behind:
            variable._compute()


class Module:
    """A scope of named variables inside one runtime."""

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime
        self._scope: dict[str, list[Variable]] = {}

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    def variable(self, observer: Observer | None = None) -> Variable:
        """Create an undefined variable in this module."""
        self._runtime._check()
        return Variable(self, observer)

    def define(self, name: str | None, inputs: list[str], definition: Any) -> Variable:
        return self.variable().define(name, inputs, definition)

    def redefine(self, name: str, inputs: list[str], definition: Any) -> Variable:
        """Replace the definition of the single variable called `name`."""
        variables = self._scope.get(name)
        if not variables:
            raise VariableError(f"{name} is not defined")
        if len(variables) > 1:
            raise VariableError(f"{name} is defined more than once")
        return variables[0].define(name, inputs, definition)

    def import_(self, name: str, alias: str | None, module: Module) -> Variable:
        """Bind `alias` (default `name`) in this module to `name` exported by `module`."""
        return self.variable().import_(name, alias, module)

    def value(self, name: str) -> Any:
        """Current value of `name`. Raises the variable's error if it is rejected."""
        resolved = self._runtime._resolve(self, name)
        if resolved is None:
            raise VariableError(f"{name} is not defined")
        if resolved is _DUPLICATE:
            raise VariableError(f"{name} is defined more than once")
        if resolved is _BUILTIN:
            return self._runtime.builtin(name)
        if resolved.error is not None:
            raise resolved.error
        return resolved.value

    def names(self) -> list[str]:
        return sorted(self._scope)

    def _bind(self, variable: Variable, name: str | None) -> None:
        self._unbind(variable)
        if name is not None:
            peers = self._scope.setdefault(name, [])
            peers.append(variable)
            for peer in peers:
                peer._stale = True

    def _unbind(self, variable: Variable) -> None:
        if variable.name is None:
            return
        peers = self._scope.get(variable.name, [])
        if variable in peers:
            peers.remove(variable)
            for peer in peers:
                peer._stale = True
        if not peers:
            self._scope.pop(variable.name, None)


class Variable:
    """One reactive binding. Created through Module.variable()."""

    def __init__(self, module: Module, observer: Observer | None = None) -> None:
        self._module = module
        self._observer = observer
        self.name: str | None = None
        self.inputs: list[str] = []
        self._definition: Any = None
        self._import: tuple[Module, str] | None = None
        self.value: Any = None
        self.error: BaseException | None = None
        self.version = 0
        self._stale = True
        self._signature: tuple | None = None
        self._attached = False

    @property
    def module(self) -> Module:
        return self._module

    def define(self, name: str | None = None, inputs: list[str] | tuple[str, ...] = (), definition: Any = None) -> Variable:
        """
        Set this variable's name, inputs and definition, then recompute.

        A callable definition is called with the input values in order; any
        other value is used as a constant. Raises TypeError for a bad name
        or inputs, leaving the variable unchanged.
        """
        runtime = self._module._runtime
        runtime._check()
        if name is not None and not is_valid_name(name):
            raise TypeError(f"invalid variable name: {name!r}")
        if isinstance(inputs, str) or not all(is_valid_name(i) for i in inputs):
            raise TypeError(f"invalid inputs: {inputs!r}")
        if inputs and not callable(definition):
            raise TypeError("a variable with inputs needs a callable definition")

        if name != self.name or not self._attached:
            self._module._bind(self, name)
        self.name = name
        self.inputs = list(inputs)
        self._definition = definition
        self._import = None
        self._stale = True
        self._attached = True
        runtime._attach(self)
        runtime._recompute()
        return self

    def import_(self, name: str, alias: str | None, module: Module) -> Variable:
        runtime = self._module._runtime
        runtime._check()
        if module._runtime is not runtime:
            raise TypeError("cannot import across runtimes")
        local = alias or name
        if not is_valid_name(name) or not is_valid_name(local):
            raise TypeError(f"invalid import: {name!r} as {alias!r}")

        if local != self.name or not self._attached:
            self._module._bind(self, local)
        self.name = local
        self.inputs = [name]
        self._definition = None
        self._import = (module, name)
        self._stale = True
        self._attached = True
        runtime._attach(self)
        runtime._recompute()
        return self

    def delete(self) -> None:
        """Remove this variable from its module. Safe to call repeatedly or after dispose."""
        runtime = self._module._runtime
        if not self._attached:
            return
        self._detach()
        if runtime.disposed:
            return
        runtime._detach(self)
        runtime._recompute()

    # -- runtime internals --

    def _detach(self) -> None:
        self._module._unbind(self)
        self._attached = False
        self.name = None

    def _dependencies(self) -> list[Any]:
        runtime = self._module._runtime
        if self._import is not None:
            module, name = self._import
            return [runtime._resolve(module, name)]
        return [runtime._resolve(self._module, name) for name in self.inputs]

    def _compute(self) -> None:
        dependencies = self._dependencies()
        signature = tuple(
            (name, id(dep), dep.version if isinstance(dep, Variable) else None)
            for name, dep in zip(self.inputs, dependencies)
        )
        if not self._stale and signature == self._signature:
            return
        self._stale = False
        self._signature = signature

        if self._observer is not None:
            self._observer.pending()

        if self.name is not None and len(self._module._scope.get(self.name, [])) > 1:
            self._fail(VariableError(f"{self.name} is defined more than once"))
            return

        args: list[Any] = []
        for name, dep in zip(self.inputs, dependencies):
            if dep is None:
                self._fail(VariableError(f"{name} is not defined"))
                return
            if dep is _DUPLICATE:
                self._fail(VariableError(f"{name} is defined more than once"))
                return
            if dep is _BUILTIN:
                source = self._import[0] if self._import is not None else self._module
                args.append(source._runtime.builtin(name))
                continue
            if dep.error is not None:
                self._fail(dep.error)
                return
            args.append(dep.value)

        if self._import is not None:
            self._succeed(args[0])
            return

        try:
            value = self._definition(*args) if callable(self._definition) else self._definition
        except Exception as e:
            self._fail(e)
            return
        self._succeed(value)

    def _succeed(self, value: Any) -> None:
        self.value = value
        self.error = None
        self.version += 1
        if self._observer is not None:
            self._observer.fulfilled(value, self.name)

    def _fail(self, error: BaseException) -> None:
        self.value = None
        self.error = error
        self.version += 1
        if self._observer is not None:
            self._observer.rejected(error, self.name)


# ---------------------------------------------------------------------------
# Graph helpers
# ---------------------------------------------------------------------------


def _toposort(
    variables: list[Variable],
    edges: dict[Variable, list[Variable]],
    done: set[Variable],
) -> tuple[list[Variable], list[Variable]]:
    """Kahn's algorithm. Inputs outside `variables` count as satisfied only if in `done`."""
    members = set(variables)
    waiting = {v: {d for d in edges.get(v, []) if d in members or d not in done} for v in variables}
    order: list[Variable] = []
    ready = [v for v in variables if not waiting[v]]
    while ready:
        variable = ready.pop(0)
        order.append(variable)
        for other in variables:
            deps = waiting[other]
            if variable in deps:
                deps.discard(variable)
                if not deps and other not in order and other not in ready:
                    ready.append(other)
    leftover = [v for v in variables if v not in order]
    return order, leftover


def _reaches(start: Variable, target: Variable, edges: dict[Variable, list[Variable]], within: list[Variable]) -> bool:
    allowed = set(within)
    seen: set[Variable] = set()
    stack = [d for d in edges.get(start, []) if d in allowed]
    while stack:
        current = stack.pop()
        if current is target:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(d for d in edges.get(current, []) if d in allowed)
    return False
