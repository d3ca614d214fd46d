"""
Parses template tokens into a node tree the renderer walks.
"""
import ast
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
import structlog

from reltmpl.exceptions import TemplateSyntaxError
from .lexer import Token, TokenType, tokenize

log = structlog.get_logger(__name__)

LEGACY_OCTAL_RE = re.compile(r"^[+-]?0[0-7_]+$")

class Node:
    line: int = 0

@dataclass
class TextNode(Node):
    text: str
    line: int = 0

@dataclass
class FieldNode(Node):
    # .A.B.C
    ident: List[str]
    line: int = 0

    def __str__(self):
        return "".join("." + part for part in self.ident)

@dataclass
class VariableNode(Node):
    # $x.A.B, ident[0] is the variable name
    ident: List[str]
    line: int = 0

    def __str__(self):
        return self.ident[0] + "".join("." + part for part in self.ident[1:])

@dataclass
class DotNode(Node):
    line: int = 0

    def __str__(self):
        return "."

@dataclass
class IdentifierNode(Node):
    # a function name
    name: str
    line: int = 0

    def __str__(self):
        return self.name

@dataclass
class LiteralNode(Node):
    # strings, numbers, booleans and nil
    value: Any
    source: str
    line: int = 0

    def __str__(self):
        return self.source

@dataclass
class CommandNode(Node):
    args: List[Node]
    line: int = 0

    def __str__(self):
        return " ".join(str(arg) if not isinstance(arg, PipeNode) else f"({arg})" for arg in self.args)

@dataclass
class PipeNode(Node):
    cmds: List[CommandNode]
    decl: List[str] = field(default_factory=list)
    line: int = 0

    def __str__(self):
        text = " | ".join(str(cmd) for cmd in self.cmds)
        if self.decl:
            text = f"{', '.join(self.decl)} := {text}"
        return text

@dataclass
class ChainNode(Node):
    # (pipeline).A.B
    node: Node
    ident: List[str]
    line: int = 0

    def __str__(self):
        return f"({self.node})" + "".join("." + part for part in self.ident)

@dataclass
class ListNode(Node):
    nodes: List[Node] = field(default_factory=list)
    line: int = 0

@dataclass
class ActionNode(Node):
    pipe: PipeNode
    line: int = 0

    def __str__(self):
        return "{{" + str(self.pipe) + "}}"

@dataclass
class BranchNode(Node):
    # shared shape of if/with/range.
    pipe: PipeNode
    body: ListNode
    else_body: Optional[ListNode] = None
    line: int = 0

class IfNode(BranchNode):
    pass

class WithNode(BranchNode):
    pass

class RangeNode(BranchNode):
    pass

BRANCH_NODES = {"if": IfNode, "with": WithNode, "range": RangeNode}

class Parser:
    """Recursive-descent parser over the token stream produced by the lexer."""

    def __init__(self, tokens: List[Token], name: str, funcs: Dict[str, Callable]):
        self.tokens = tokens
        self.name = name
        self.funcs = funcs
        self.index = 0
        self.declared_vars: List[str] = ["$"]

    # token helpers

    def peek(self) -> Token:
        return self.tokens[self.index]

    def next(self) -> Token:
        token = self.tokens[self.index]
        if token.type != TokenType.EOF:
            self.index += 1
        return token

    def peek_non_space(self) -> Token:
        probe = self.index
        while self.tokens[probe].type == TokenType.SPACE:
            probe += 1
        return self.tokens[probe]

    def next_non_space(self) -> Token:
        token = self.next()
        while token.type == TokenType.SPACE:
            token = self.next()
        return token

    def error(self, message: str, token: Optional[Token] = None):
        line = token.line if token else self.peek().line
        raise TemplateSyntaxError(message, self.name, line)

    def expect(self, token_type: TokenType, context: str) -> Token:
        token = self.next_non_space()
        if token.type != token_type:
            self.error(f"unexpected {self._describe(token)} in {context}", token)
        return token

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type == TokenType.EOF:
            return "EOF"
        if token.type == TokenType.RIGHT:
            return '"}}"'
        return f'"{token.value}"'

    # structure

    def parse(self) -> ListNode:
        body, terminator = self.parse_list()
        if terminator != "eof":
            self.error(f"unexpected {{{{{terminator}}}}}")
        return body

    def parse_list(self) -> Tuple[ListNode, str]:
        """Parses nodes until EOF or an {{end}}/{{else}} keyword, returning which one stopped it."""
        body = ListNode(line=self.peek().line)
        while True:
            token = self.next()
            if token.type == TokenType.EOF:
                return body, "eof"
            if token.type == TokenType.TEXT:
                body.nodes.append(TextNode(token.value, line=token.line))
                continue
            # token is LEFT
            head = self.peek_non_space()
            if head.type == TokenType.KEYWORD:
                self.next_non_space()
                if head.value in ("end", "else"):
                    return body, head.value
                body.nodes.append(self.parse_branch(head))
                continue
            pipe = self.parse_pipeline("command", TokenType.RIGHT)
            body.nodes.append(ActionNode(pipe, line=token.line))

    def parse_branch(self, keyword: Token) -> BranchNode:
        node_cls = BRANCH_NODES[keyword.value]
        scope = len(self.declared_vars)
        pipe = self.parse_pipeline(keyword.value, TokenType.RIGHT, allow_range_decl=keyword.value == "range")
        body, terminator = self.parse_list()
        else_body = None
        if terminator == "else":
            if keyword.value == "if" and self.peek_non_space().type == TokenType.KEYWORD \
                    and self.peek_non_space().value == "if":
                # {{else if ...}} nests a new if that shares our {{end}}.
                nested_keyword = self.next_non_space()
                else_body = ListNode([self.parse_branch(nested_keyword)], line=nested_keyword.line)
                del self.declared_vars[scope:]
                return node_cls(pipe, body, else_body, line=keyword.line)
            self.expect(TokenType.RIGHT, "else")
            else_body, terminator = self.parse_list()
            if terminator == "else":
                self.error("expected end; found {{else}}")
        if terminator != "end":
            self.error(f"unexpected EOF in {keyword.value}")
        self.expect(TokenType.RIGHT, "end")
        del self.declared_vars[scope:]
        return node_cls(pipe, body, else_body, line=keyword.line)

    # pipelines

    def parse_pipeline(self, context: str, end: TokenType, allow_range_decl: bool = False) -> PipeNode:
        line = self.peek().line
        decl = self._parse_declarations(allow_range_decl)
        cmds: List[CommandNode] = []
        while True:
            token = self.peek_non_space()
            if token.type == end:
                self.next_non_space()
                break
            if token.type == TokenType.PIPE:
                if not cmds:
                    self.error(f"missing command before | in {context}", token)
                self.next_non_space()
                if self.peek_non_space().type in (end, TokenType.PIPE):
                    self.error(f"missing command after | in {context}", token)
                continue
            if cmds and not self._previous_was_pipe():
                self.error(f"unexpected {self._describe(token)} in {context}", token)
            cmds.append(self.parse_command(context, end))
        if not cmds:
            self.error(f"missing value for {context}")
        for cmd in cmds[1:]:
            first = cmd.args[0]
            if isinstance(first, (LiteralNode, DotNode)):
                self.error(f"non executable command in pipeline stage {cmds.index(cmd) + 1}")
        self.declared_vars.extend(decl)
        return PipeNode(cmds, decl, line=line)

    def _previous_was_pipe(self) -> bool:
        probe = self.index - 1
        while probe >= 0 and self.tokens[probe].type == TokenType.SPACE:
            probe -= 1
        return probe >= 0 and self.tokens[probe].type == TokenType.PIPE

    def _parse_declarations(self, allow_range_decl: bool) -> List[str]:
        start = self.index
        first = self.peek_non_space()
        if first.type != TokenType.VARIABLE:
            return []
        self.next_non_space()
        names = [first.value]
        token = self.peek_non_space()
        if token.type == TokenType.COMMA and allow_range_decl:
            self.next_non_space()
            second = self.next_non_space()
            if second.type != TokenType.VARIABLE:
                self.error("range can only initialize variables", second)
            names.append(second.value)
            token = self.peek_non_space()
        if token.type == TokenType.DECLARE:
            self.next_non_space()
            return names
        self.index = start
        return []

    def parse_command(self, context: str, end: TokenType) -> CommandNode:
        line = self.peek_non_space().line
        args: List[Node] = []
        while True:
            token = self.peek()
            if token.type == TokenType.SPACE:
                self.next()
                continue
            if token.type in (end, TokenType.PIPE):
                break
            if token.type == TokenType.EOF:
                self.error(f"unclosed action in {context}", token)
            if args and self.tokens[self.index - 1].type != TokenType.SPACE:
                self.error(f"missing space before {self._describe(token)} in {context}", token)
            args.append(self.parse_operand(context))
        if not args:
            self.error(f"empty command in {context}")
        return CommandNode(args, line=line)

    def parse_operand(self, context: str) -> Node:
        node = self.parse_term(context)
        chain: List[str] = []
        while self.peek().type == TokenType.FIELD:
            chain.append(self.next().value[1:])
        if not chain:
            return node
        if isinstance(node, FieldNode):
            node.ident.extend(chain)
            return node
        if isinstance(node, VariableNode):
            node.ident.extend(chain)
            return node
        if isinstance(node, (LiteralNode, DotNode)):
            self.error(f"unexpected . after term {node}")
        return ChainNode(node, chain, line=node.line)

    def parse_term(self, context: str) -> Node:
        token = self.next()
        kind = token.type
        if kind == TokenType.FIELD:
            return FieldNode([token.value[1:]], line=token.line)
        if kind == TokenType.DOT:
            return DotNode(line=token.line)
        if kind == TokenType.VARIABLE:
            if token.value not in self.declared_vars:
                self.error(f"undefined variable \"{token.value}\"", token)
            return VariableNode([token.value], line=token.line)
        if kind == TokenType.IDENTIFIER:
            if token.value not in self.funcs:
                self.error(f'function "{token.value}" not defined', token)
            return IdentifierNode(token.value, line=token.line)
        if kind == TokenType.STRING:
            try:
                value = ast.literal_eval(token.value)
            except (SyntaxError, ValueError) as e:
                self.error(f"invalid quoted string {token.value}: {e}", token)
            return LiteralNode(value, token.value, line=token.line)
        if kind == TokenType.RAW_STRING:
            return LiteralNode(token.value, f"`{token.value}`", line=token.line)
        if kind == TokenType.NUMBER:
            return LiteralNode(self._parse_number(token), token.value, line=token.line)
        if kind == TokenType.BOOL:
            return LiteralNode(token.value == "true", token.value, line=token.line)
        if kind == TokenType.NIL:
            return LiteralNode(None, token.value, line=token.line)
        if kind == TokenType.LPAREN:
            return self.parse_pipeline("parenthesized pipeline", TokenType.RPAREN)
        self.error(f"unexpected {self._describe(token)} in {context}", token)

    def _parse_number(self, token: Token):
        if LEGACY_OCTAL_RE.match(token.value):
            # a leading zero means octal, as in 0755.
            try:
                return int(token.value.replace("_", ""), 8)
            except ValueError:
                pass
        try:
            return int(token.value, 0)
        except ValueError:
            pass
        try:
            return float(token.value)
        except ValueError:
            self.error(f"bad number syntax: {token.value!r}", token)

def parse(source: str, funcs: Dict[str, Callable], name: str = "tmpl") -> ListNode:
    """Tokenizes and parses ``source``; raises TemplateSyntaxError on malformed input."""
    tree = Parser(tokenize(source, name), name, funcs).parse()
    log.debug("template_parsed", name=name, nodes=len(tree.nodes))
    return tree
