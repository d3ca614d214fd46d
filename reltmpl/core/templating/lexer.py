"""
Tokenizer for the ``{{ }}`` template syntax.

The grammar follows Go's text/template closely enough that release templates
written for Go tooling (``{{ .Env.TOKEN }}``, ``{{ .Version | replace "." "_" }}``)
work unchanged.
"""
from enum import Enum
from typing import List, NamedTuple
import structlog

from reltmpl.exceptions import TemplateSyntaxError

log = structlog.get_logger(__name__)

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"
LEFT_COMMENT = "/*"
RIGHT_COMMENT = "*/"
TRIM_MARKER = "-"
SPACE_CHARS = " \t\r\n"

KEYWORDS = {"if", "else", "end", "with", "range"}

class TokenType(Enum):
    TEXT = "text"
    LEFT = "left_delim"
    RIGHT = "right_delim"
    SPACE = "space"
    FIELD = "field"
    DOT = "dot"
    VARIABLE = "variable"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    STRING = "string"
    RAW_STRING = "raw_string"
    NUMBER = "number"
    BOOL = "bool"
    NIL = "nil"
    PIPE = "pipe"
    LPAREN = "left_paren"
    RPAREN = "right_paren"
    DECLARE = "declare"
    COMMA = "comma"
    EOF = "eof"

class Token(NamedTuple):
    type: TokenType
    value: str
    line: int

def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"

class Lexer:
    """Splits template text into tokens; whitespace inside actions is kept as SPACE tokens."""

    def __init__(self, source: str, name: str = "tmpl"):
        self.source = source
        self.name = name
        self.pos = 0
        self.line = 1
        self.tokens: List[Token] = []

    def error(self, message: str):
        raise TemplateSyntaxError(message, self.name, self.line)

    def emit(self, token_type: TokenType, value: str):
        self.tokens.append(Token(token_type, value, self.line))

    def tokenize(self) -> List[Token]:
        src = self.source
        while self.pos < len(src):
            start = src.find(LEFT_DELIM, self.pos)
            if start == -1:
                self.emit(TokenType.TEXT, src[self.pos:])
                self.line += src.count("\n", self.pos)
                self.pos = len(src)
                break
            trim_left = self._has_left_trim(start)
            text = src[self.pos:start]
            if trim_left:
                text = text.rstrip(SPACE_CHARS)
            if text:
                self.emit(TokenType.TEXT, text)
            self.line += src.count("\n", self.pos, start)
            self.pos = start + len(LEFT_DELIM) + (len(TRIM_MARKER) if trim_left else 0)
            self._lex_action()
        self.emit(TokenType.EOF, "")
        log.debug("template_tokenized", name=self.name, tokens=len(self.tokens))
        return self.tokens

    def _has_left_trim(self, delim_pos: int) -> bool:
        after = delim_pos + len(LEFT_DELIM)
        return (self.source.startswith(TRIM_MARKER, after)
                and after + 1 < len(self.source)
                and self.source[after + 1] in SPACE_CHARS)

    def _close_action(self, trim_right: bool):
        self.emit(TokenType.RIGHT, RIGHT_DELIM)
        if trim_right:
            while self.pos < len(self.source) and self.source[self.pos] in SPACE_CHARS:
                if self.source[self.pos] == "\n":
                    self.line += 1
                self.pos += 1

    def _lex_comment(self) -> bool:
        src = self.source
        probe = self.pos
        while probe < len(src) and src[probe] in SPACE_CHARS:
            probe += 1
        if not src.startswith(LEFT_COMMENT, probe):
            return False
        end = src.find(RIGHT_COMMENT, probe + len(LEFT_COMMENT))
        if end == -1:
            self.error("unclosed comment")
        self.line += src.count("\n", self.pos, end)
        self.pos = end + len(RIGHT_COMMENT)
        trim_right = False
        probe = self.pos
        while probe < len(src) and src[probe] in SPACE_CHARS:
            probe += 1
        if probe > self.pos and src.startswith(TRIM_MARKER + RIGHT_DELIM, probe):
            trim_right = True
            self.pos = probe + len(TRIM_MARKER) + len(RIGHT_DELIM)
        elif src.startswith(RIGHT_DELIM, self.pos):
            self.pos += len(RIGHT_DELIM)
        else:
            self.error("comment ends before closing delimiter")
        if trim_right:
            while self.pos < len(src) and src[self.pos] in SPACE_CHARS:
                if src[self.pos] == "\n":
                    self.line += 1
                self.pos += 1
        return True

    def _lex_action(self):
        if self._lex_comment():
            return
        self.emit(TokenType.LEFT, LEFT_DELIM)
        src = self.source
        while True:
            if self.pos >= len(src):
                self.error("unclosed action")
            ch = src[self.pos]
            if ch in SPACE_CHARS:
                start = self.pos
                while self.pos < len(src) and src[self.pos] in SPACE_CHARS:
                    self.pos += 1
                self.line += src.count("\n", start, self.pos)
                if src.startswith(TRIM_MARKER + RIGHT_DELIM, self.pos):
                    self.pos += len(TRIM_MARKER) + len(RIGHT_DELIM)
                    self._close_action(trim_right=True)
                    return
                self.emit(TokenType.SPACE, src[start:self.pos])
            elif src.startswith(RIGHT_DELIM, self.pos):
                self.pos += len(RIGHT_DELIM)
                self._close_action(trim_right=False)
                return
            elif ch == "|":
                self.pos += 1
                self.emit(TokenType.PIPE, ch)
            elif ch == "(":
                self.pos += 1
                self.emit(TokenType.LPAREN, ch)
            elif ch == ")":
                self.pos += 1
                self.emit(TokenType.RPAREN, ch)
            elif ch == ",":
                self.pos += 1
                self.emit(TokenType.COMMA, ch)
            elif src.startswith(":=", self.pos):
                self.pos += 2
                self.emit(TokenType.DECLARE, ":=")
            elif ch == '"':
                self._lex_quote()
            elif ch == "`":
                self._lex_raw_quote()
            elif ch == ".":
                self._lex_field()
            elif ch == "$":
                self._lex_variable()
            elif ch.isdigit() or (ch in "+-" and self.pos + 1 < len(src) and src[self.pos + 1].isdigit()):
                self._lex_number()
            elif ch.isalpha() or ch == "_":
                self._lex_identifier()
            else:
                self.error(f"unexpected {ch!r} in command")

    def _read_ident(self) -> str:
        start = self.pos
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            self.pos += 1
        return self.source[start:self.pos]

    def _lex_field(self):
        self.pos += 1
        if self.pos >= len(self.source) or not _is_ident_char(self.source[self.pos]):
            self.emit(TokenType.DOT, ".")
            return
        self.emit(TokenType.FIELD, "." + self._read_ident())

    def _lex_variable(self):
        self.pos += 1
        self.emit(TokenType.VARIABLE, "$" + self._read_ident())

    def _lex_identifier(self):
        word = self._read_ident()
        if word in ("true", "false"):
            self.emit(TokenType.BOOL, word)
        elif word == "nil":
            self.emit(TokenType.NIL, word)
        elif word in KEYWORDS:
            self.emit(TokenType.KEYWORD, word)
        else:
            self.emit(TokenType.IDENTIFIER, word)

    def _lex_number(self):
        start = self.pos
        self.pos += 1
        while self.pos < len(self.source) and (_is_ident_char(self.source[self.pos]) or self.source[self.pos] == "."):
            self.pos += 1
        self.emit(TokenType.NUMBER, self.source[start:self.pos])

    def _lex_quote(self):
        start = self.pos
        self.pos += 1
        src = self.source
        while True:
            if self.pos >= len(src) or src[self.pos] == "\n":
                self.error("unterminated quoted string")
            ch = src[self.pos]
            if ch == "\\":
                if self.pos + 1 >= len(src) or src[self.pos + 1] == "\n":
                    self.error("unterminated quoted string")
                self.pos += 2
                continue
            self.pos += 1
            if ch == '"':
                break
        self.emit(TokenType.STRING, src[start:self.pos])

    def _lex_raw_quote(self):
        start = self.pos
        end = self.source.find("`", start + 1)
        if end == -1:
            self.error("unterminated raw quoted string")
        value = self.source[start + 1:end]
        self.emit(TokenType.RAW_STRING, value)
        self.line += value.count("\n")
        self.pos = end + 1

def tokenize(source: str, name: str = "tmpl") -> List[Token]:
    return Lexer(source, name).tokenize()
