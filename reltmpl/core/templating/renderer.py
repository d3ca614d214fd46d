"""
Contains the TemplateRenderer class responsible for compiling template strings
and executing them against a Field Set.

Missing keys are always errors: ``{{ .Nope }}`` raises MissingFieldError
instead of rendering an empty string.
"""
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple
import structlog

from reltmpl.exceptions import MissingFieldError, TemplateError, TemplateExecError
from .builtins import GO_BUILTINS, LAZY_BUILTINS, format_value, is_true
from .parser import (
    ActionNode, BranchNode, ChainNode, CommandNode, DotNode, FieldNode, IdentifierNode,
    IfNode, ListNode, LiteralNode, Node, PipeNode, RangeNode, TextNode, VariableNode,
    WithNode, parse,
)

log = structlog.get_logger(__name__)

class _NoValue:
    # marks "no piped value" in command evaluation.
    def __repr__(self):
        return "<no value>"

NO_VALUE = _NoValue()

class _ExecState:
    """Per-render state: output buffer and the variable stack."""

    def __init__(self, name: str, funcs: Dict[str, Callable], data: Any):
        self.name = name
        self.funcs = funcs
        self.out: List[str] = []
        self.vars: List[Tuple[str, Any]] = [("$", data)]

    def error(self, node: Node, message: str, error_cls=TemplateExecError):
        raise error_cls(message, self.name, node.line, str(node))

    def push(self, name: str, value: Any):
        self.vars.append((name, value))

    def var_value(self, node: VariableNode) -> Any:
        name = node.ident[0]
        for var_name, value in reversed(self.vars):
            if var_name == name:
                return value
        self.error(node, f'undefined variable: {name}')

    # walking

    def walk(self, dot: Any, node: Node):
        if isinstance(node, TextNode):
            self.out.append(node.text)
        elif isinstance(node, ActionNode):
            value = self.eval_pipeline(dot, node.pipe)
            if not node.pipe.decl:
                self.out.append(format_value(value))
        elif isinstance(node, ListNode):
            for child in node.nodes:
                self.walk(dot, child)
        elif isinstance(node, RangeNode):
            self.walk_range(dot, node)
        elif isinstance(node, (IfNode, WithNode)):
            self.walk_if_or_with(dot, node)
        else:
            self.error(node, f"unknown node: {type(node).__name__}")

    def walk_if_or_with(self, dot: Any, node: BranchNode):
        mark = len(self.vars)
        value = self.eval_pipeline(dot, node.pipe)
        if is_true(value):
            self.walk(value if isinstance(node, WithNode) else dot, node.body)
        elif node.else_body is not None:
            self.walk(dot, node.else_body)
        del self.vars[mark:]

    def walk_range(self, dot: Any, node: RangeNode):
        mark = len(self.vars)
        decl = node.pipe.decl
        value = self.eval_pipeline(dot, node.pipe, declare=False)
        items = self._range_items(node, value)
        if not items and node.else_body is not None:
            self.walk(dot, node.else_body)
        for key, elem in items:
            # range variables shadow outer ones for a single iteration.
            if len(decl) == 1:
                self.push(decl[0], elem)
            elif len(decl) == 2:
                self.push(decl[0], key)
                self.push(decl[1], elem)
            self.walk(elem, node.body)
            del self.vars[mark:]
        del self.vars[mark:]

    def _range_items(self, node: RangeNode, value: Any) -> List[Tuple[Any, Any]]:
        if value is None:
            return []
        if isinstance(value, Mapping):
            return [(key, value[key]) for key in sorted(value)]
        if isinstance(value, int) and not isinstance(value, bool):
            return [(i, i) for i in range(value)]
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            self.error(node, f"range can't iterate over {format_value(value)}")
        return list(enumerate(value))

    # evaluation

    def eval_pipeline(self, dot: Any, pipe: PipeNode, declare: bool = True) -> Any:
        value: Any = NO_VALUE
        for cmd in pipe.cmds:
            value = self.eval_command(dot, cmd, value)
        if value is NO_VALUE:
            value = None
        if declare:
            for name in pipe.decl:
                self.push(name, value)
        return value

    def eval_command(self, dot: Any, cmd: CommandNode, final: Any) -> Any:
        first = cmd.args[0]
        if isinstance(first, IdentifierNode):
            return self.eval_function(dot, first, cmd.args[1:], final)
        if len(cmd.args) > 1 or final is not NO_VALUE:
            self.error(first, f"can't give argument to non-function {first}")
        return self.eval_arg(dot, first)

    def eval_function(self, dot: Any, ident: IdentifierNode, arg_nodes: List[Node], final: Any) -> Any:
        name = ident.name
        fn = self.funcs[name]
        if name in LAZY_BUILTINS:
            thunks = [lambda node=node: self.eval_arg(dot, node) for node in arg_nodes]
            if final is not NO_VALUE:
                thunks.append(lambda: final)
            if not thunks:
                self.error(ident, f"wrong number of args for {name}: want at least 1 got 0")
            return fn(*thunks)
        args = [self.eval_arg(dot, node) for node in arg_nodes]
        if final is not NO_VALUE:
            args.append(final)
        try:
            return fn(*args)
        except TemplateError:
            raise
        except Exception as e:
            log.debug("template_function_failed", function=name, error=str(e))
            raise TemplateExecError(f"error calling {name}: {e}", self.name, ident.line, name) from e

    def eval_arg(self, dot: Any, node: Node) -> Any:
        if isinstance(node, FieldNode):
            return self.eval_field_chain(node, dot, node.ident)
        if isinstance(node, VariableNode):
            return self.eval_field_chain(node, self.var_value(node), node.ident[1:])
        if isinstance(node, ChainNode):
            receiver = self.eval_arg(dot, node.node)
            return self.eval_field_chain(node, receiver, node.ident)
        if isinstance(node, DotNode):
            return dot
        if isinstance(node, LiteralNode):
            return node.value
        if isinstance(node, PipeNode):
            return self.eval_pipeline(dot, node)
        if isinstance(node, IdentifierNode):
            return self.eval_function(dot, node, [], NO_VALUE)
        self.error(node, f"can't handle {node} as argument")

    def eval_field_chain(self, node: Node, receiver: Any, ident: List[str]) -> Any:
        for name in ident:
            receiver = self.eval_field(node, receiver, name)
        return receiver

    def eval_field(self, node: Node, receiver: Any, name: str) -> Any:
        if isinstance(receiver, Mapping):
            if name in receiver:
                return receiver[name]
            self.error(node, f'map has no entry for key "{name}"', MissingFieldError)
        if receiver is None:
            self.error(node, f"nil pointer evaluating .{name}")
        if not name.startswith("_") and not isinstance(receiver, (str, bytes, int, float, bool, list, tuple)) \
                and hasattr(receiver, name):
            return getattr(receiver, name)
        self.error(node, f"can't evaluate field {name} in type {type(receiver).__name__}")

class TemplateRenderer:
    """Compiles a template string once and renders it against field data."""

    def __init__(self, source: str, helpers: Optional[Dict[str, Callable]] = None, name: str = "tmpl"):
        self.name = name
        self.registered_helpers: Dict[str, Callable] = {**GO_BUILTINS, **(helpers or {})}
        try:
            self.tree = parse(source, self.registered_helpers, name)
        except TemplateError as e:
            log.debug("template_parse_failed", name=name, error=str(e))
            raise

    def render(self, data: Any) -> str:
        """Executes the compiled template; output is only returned when the whole render succeeds."""
        state = _ExecState(self.name, self.registered_helpers, data)
        try:
            state.walk(data, self.tree)
        except TemplateError as e:
            log.debug("template_render_failed", name=self.name, error=str(e))
            raise
        return "".join(state.out)
