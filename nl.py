#!/usr/bin/env python3

from abc import ABC, abstractmethod
from argparse import ArgumentParser
from dataclasses import dataclass, field
from pathlib import Path
from string import digits, hexdigits, printable, whitespace
from types import ModuleType
from typing import (
    Any,
    Callable,
    Iterable,
    Iterator,
    Optional,
    TextIO,
    Tuple,
    Union,
    final,
)
import code
import enum
import os
import sys


readline: Optional[ModuleType]
try:
    # REPL readline support.
    import readline
except ImportError:
    readline = None


def utf8(text: str) -> bytes:
    # Source text is decoded with surrogateescape so that arbitrary bytes in a
    # source file survive into word and string literals.
    return text.encode("utf-8", errors="surrogateescape")


def quote(item: Any) -> str:
    text = str(item)
    return f"`{text}`" if "`" not in text else f'"{text}"'


class Value(ABC):
    @staticmethod
    @abstractmethod
    def typename() -> str:
        raise NotImplementedError()

    @staticmethod
    @abstractmethod
    def tag() -> int:
        """
        Type tag produced when a value is combined onto null.
        """
        raise NotImplementedError()

    @abstractmethod
    def __hash__(self):
        raise NotImplementedError()

    @abstractmethod
    def __eq__(self, other):
        raise NotImplementedError()

    @abstractmethod
    def __str__(self):
        raise NotImplementedError()


@final
@dataclass
class Null(Value):
    @staticmethod
    def typename() -> str:
        return "null"

    @staticmethod
    def tag() -> int:
        return 0

    def __hash__(self):
        return 0

    def __eq__(self, other):
        return type(self) is type(other)

    def __str__(self):
        return "null"


@final
@dataclass
class Bits(Value):
    """
    Immutable sequence of `length` bits packed most-significant-bit first into
    `data`. Unused trailing bits of the final byte are always zero, so two bit
    sequences are equal exactly when their lengths and bytes are equal.
    """

    data: bytes
    length: int

    def __post_init__(self):
        if len(self.data) != (self.length + 7) // 8:
            raise ValueError(
                f"invalid bit sequence of length {self.length} with {len(self.data)} bytes"
            )

    @staticmethod
    def typename() -> str:
        return "bits"

    @staticmethod
    def tag() -> int:
        return 1

    @staticmethod
    def new(data: bytes) -> "Bits":
        return Bits(data, len(data) * 8)

    @staticmethod
    def from_integer(value: int, length: int) -> "Bits":
        # The first bit of the sequence is the most significant bit of value.
        assert 0 <= value < (1 << length)
        padding = -length % 8
        return Bits((value << padding).to_bytes((length + 7) // 8, "big"), length)

    @staticmethod
    def from_binary(text: str) -> "Bits":
        return Bits.from_integer(int(text, 2) if len(text) != 0 else 0, len(text))

    def __hash__(self):
        return hash((self.data, self.length))

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return self.length == other.length and self.data == other.data

    def __str__(self):
        return f"`{self.binary}`"

    def __iter__(self) -> Iterator[int]:
        for c in self.binary:
            yield int(c)

    @property
    def integer(self) -> int:
        return int.from_bytes(self.data, "big") >> (-self.length % 8)

    @property
    def binary(self) -> str:
        if self.length == 0:
            return ""
        return format(self.integer, f"0{self.length}b")

    def concat(self, other: "Bits") -> "Bits":
        value = (self.integer << other.length) | other.integer
        return Bits.from_integer(value, self.length + other.length)

    def slice(self, start: int, stop: int) -> "Bits":
        assert 0 <= start <= stop <= self.length
        width = stop - start
        value = (self.integer >> (self.length - stop)) & ((1 << width) - 1)
        return Bits.from_integer(value, width)


def encode(x: int) -> Bits:
    if x < 0:
        raise ValueError(f"cannot encode negative integer {x}")
    # Bit i of the sequence is bit i of x, least significant bit first.
    return Bits.from_binary(format(x, "b")[::-1])


def decode(bits: Bits) -> int:
    if bits.length == 0:
        return 0
    return int(bits.binary[::-1], 2)


CONST_BITS_ZERO = encode(0)
CONST_BITS_ONE = encode(1)


@final
@dataclass
class Set(Value):
    data: dict[Bits, Value] = field(default_factory=dict)

    @staticmethod
    def typename() -> str:
        return "set"

    @staticmethod
    def tag() -> int:
        return 2

    def __hash__(self):
        return hash(frozenset(self.data.items()))

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        if len(self.data) != len(other.data):
            return False
        for k, v in self.data.items():
            if k not in other.data or other.data[k] != v:
                return False
        return True

    def __str__(self):
        elements = "; ".join([f"{str(k)}={str(v)}" for k, v in self.data.items()])
        return f"{{{elements}}}"

    def __contains__(self, item) -> bool:
        return item in self.data

    def __len__(self) -> int:
        return len(self.data)

    def get(self, key: Bits) -> Value:
        return self.data.get(key, Null())

    def merge(self, other: "Set") -> "Set":
        # Keys already present keep their position and take the right value.
        return Set({**self.data, **other.data})

    def keyset(self) -> "Set":
        return Set({encode(i): k for i, k in enumerate(self.data.keys())})


@final
@dataclass
class Function(Value):
    ast: "AstExpressionFunction"
    scope: Set
    pattern: Bits

    @staticmethod
    def typename() -> str:
        return "function"

    @staticmethod
    def tag() -> int:
        return 3

    def __hash__(self):
        return hash(id(self))

    def __eq__(self, other):
        return self is other

    def __str__(self):
        if self.ast.location is not None:
            return f"function@[{self.ast.location}]"
        return "function"


def typename(value: Value) -> str:
    return value.typename()


@dataclass
class SourceLocation:
    filename: Optional[str]
    line: int

    def __str__(self):
        if self.filename is None:
            return f"line {self.line}"
        return f"{self.filename}, line {self.line}"


class TokenKind(enum.Enum):
    # Meta
    EOF = "eof"
    # Literals
    BITS = "bits"
    # Delimiters
    SCOPE = "$"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    ASSIGN = "="
    SEMICOLON = ";"
    COLON = ":"

    def __str__(self):
        return self.value


@dataclass
class Token:
    kind: TokenKind
    literal: str
    location: Optional[SourceLocation] = None
    bits: Optional[Bits] = None

    def __str__(self):
        if self.kind == TokenKind.EOF:
            return "end-of-file"
        if self.kind == TokenKind.BITS:

            def prettyable(c):
                return c in printable and c not in whitespace

            def prettyrepr(c):
                return c if prettyable(c) else f"{ord(c):#04x}"

            return "".join(map(prettyrepr, self.literal))
        return f"{self.kind.value}"


@dataclass
class ParseError(Exception):
    location: Optional[SourceLocation]
    why: str

    def __str__(self):
        if self.location is None:
            return f"{self.why}"
        return f"[{self.location}] {self.why}"


class Lexer:
    EOF_LITERAL = ""
    WHITESPACE = " \t\r\n"
    QUOTES = "\"'`"
    PUNCTUATION = {
        # fmt: off
        str(TokenKind.SCOPE):     TokenKind.SCOPE,
        str(TokenKind.LPAREN):    TokenKind.LPAREN,
        str(TokenKind.RPAREN):    TokenKind.RPAREN,
        str(TokenKind.LBRACE):    TokenKind.LBRACE,
        str(TokenKind.RBRACE):    TokenKind.RBRACE,
        str(TokenKind.ASSIGN):    TokenKind.ASSIGN,
        str(TokenKind.SEMICOLON): TokenKind.SEMICOLON,
        str(TokenKind.COLON):     TokenKind.COLON,
        # fmt: on
    }

    def __init__(self, source: str, location: Optional[SourceLocation] = None):
        self.source: str = source
        # What position does the source "start" being lexed from.
        # None if the source is being lexed in a location-independent manner.
        self.location: Optional[SourceLocation] = location
        self.position: int = 0
        # Location of the first character of the token currently being lexed.
        self.token_location: Optional[SourceLocation] = None

    def _current_character(self) -> str:
        if self.position >= len(self.source):
            return Lexer.EOF_LITERAL
        return self.source[self.position]

    def _is_eof(self) -> bool:
        return self.position >= len(self.source)

    def _advance_character(self) -> None:
        if self._is_eof():
            return
        if self.location is not None:
            self.location.line += int(self.source[self.position] == "\n")
        self.position += 1

    def _is_word_character(self, ch: str) -> bool:
        return (
            ch not in Lexer.WHITESPACE
            and ch not in Lexer.QUOTES
            and ch not in Lexer.PUNCTUATION
        )

    def _skip_whitespace(self) -> None:
        while not self._is_eof() and self._current_character() in Lexer.WHITESPACE:
            self._advance_character()

    def _skip_comment(self) -> None:
        # Comments run from one unescaped `#` to the next, newlines included.
        if self._current_character() != "#":
            return
        self._advance_character()
        while not self._is_eof() and self._current_character() != "#":
            if self._current_character() == "\\":
                self._advance_character()
            self._advance_character()
        self._advance_character()

    def _skip_whitespace_and_comments(self) -> None:
        while not self._is_eof() and (
            self._current_character() in Lexer.WHITESPACE
            or self._current_character() == "#"
        ):
            self._skip_whitespace()
            self._skip_comment()

    def _new_token(self, kind: TokenKind, literal: str, **kwargs) -> Token:
        return Token(kind, literal, self.token_location, **kwargs)

    def _lex_number(self) -> Token:
        assert self._current_character() in digits
        text = ""
        while not self._is_eof():
            if self._current_character() == "#":
                self._skip_comment()
                continue
            if self._current_character() not in digits:
                break
            text += self._current_character()
            self._advance_character()
        try:
            number = int(text)
        except ValueError as e:
            raise ParseError(self.token_location, str(e))
        return self._new_token(TokenKind.BITS, text, bits=encode(number))

    def _lex_word(self) -> Token:
        text = ""
        while not self._is_eof():
            if self._current_character() == "#":
                self._skip_comment()
                continue
            if self._current_character() == "\\":
                self._advance_character()
                if self._is_eof():
                    raise ParseError(
                        self.token_location,
                        "expected escaped character, found end-of-file",
                    )
                text += self._current_character()
                self._advance_character()
                continue
            if not self._is_word_character(self._current_character()):
                break
            text += self._current_character()
            self._advance_character()
        return self._new_token(TokenKind.BITS, text, bits=Bits.new(utf8(text)))

    def _lex_quoted(self) -> Token:
        assert self._current_character() in Lexer.QUOTES
        start = self.position
        delimiter = self._current_character()
        self._advance_character()
        text = ""
        while not self._is_eof() and self._current_character() != delimiter:
            if self._current_character() == "\\":
                self._advance_character()
                if self._is_eof():
                    break
            text += self._current_character()
            self._advance_character()
        # An unterminated quote silently runs to the end of the source.
        self._advance_character()
        literal = self.source[start : self.position]
        match delimiter:
            case '"':
                bits = Bits.new(utf8(text))
            case "'":
                try:
                    if any(c not in hexdigits for c in text):
                        raise ValueError(text)
                    bits = Bits.new(bytes.fromhex(text))
                except ValueError:
                    raise ParseError(
                        self.token_location,
                        f"expected hexadecimal literal, found {quote(text)}",
                    )
            case "`":
                for c in text:
                    if c not in "01":
                        raise ParseError(
                            self.token_location,
                            f"expected binary digit in bit literal, found {quote(c)}",
                        )
                bits = Bits.from_binary(text)
        return self._new_token(TokenKind.BITS, literal, bits=bits)

    def next_token(self) -> Token:
        if self.location is not None:
            file = self.location.filename
            line = self.location.line
            self.location = SourceLocation(file, line)
        self._skip_whitespace_and_comments()
        self.token_location = (
            SourceLocation(self.location.filename, self.location.line)
            if self.location is not None
            else None
        )

        if self._is_eof():
            return self._new_token(TokenKind.EOF, Lexer.EOF_LITERAL)

        if self._current_character() in Lexer.QUOTES:
            return self._lex_quoted()
        if self._current_character() in Lexer.PUNCTUATION:
            character = self._current_character()
            self._advance_character()
            return self._new_token(Lexer.PUNCTUATION[character], character)
        if self._current_character() in digits:
            return self._lex_number()
        return self._lex_word()


def tokenize(source: str, location: Optional[SourceLocation] = None) -> list[Token]:
    lexer = Lexer(source, location)
    tokens: list[Token] = list()
    while (token := lexer.next_token()).kind != TokenKind.EOF:
        tokens.append(token)
    return tokens


class ErrorKind(enum.Enum):
    UNSUPPORTED_COMBINATION = "unsupported combination"
    KEY_TYPE = "key type error"
    INVALID_SLICE = "invalid slice"
    RESOURCE_EXHAUSTED = "resource exhausted"

    def __str__(self):
        return self.value


@dataclass
class Error:
    @dataclass
    class TraceElement:
        location: Optional[SourceLocation]
        function: Function

    location: Optional[SourceLocation]
    kind: ErrorKind
    why: str
    trace: list[TraceElement] = field(default_factory=list)

    def __str__(self):
        return f"{self.kind}: {self.why}"


class AstNode(ABC):
    location: Optional[SourceLocation]


class AstExpression(AstNode):
    location: Optional[SourceLocation]

    @abstractmethod
    def eval(self, scope: Set) -> Union[Value, Error]:
        raise NotImplementedError()


@final
@dataclass
class AstProgram(AstNode):
    location: Optional[SourceLocation]
    expression: AstExpression

    def __str__(self):
        return str(self.expression)

    def eval(self, scope: Optional[Set] = None) -> Union[Value, Error]:
        try:
            return self.expression.eval(scope if scope is not None else Set())
        except RecursionError:
            return Error(
                self.location,
                ErrorKind.RESOURCE_EXHAUSTED,
                "maximum recursion depth exceeded",
            )


@final
@dataclass
class AstExpressionNull(AstExpression):
    """
    Absent operand, e.g. an empty group or an empty function body.
    """

    location: Optional[SourceLocation]

    def __str__(self):
        return "null"

    def eval(self, scope: Set) -> Union[Value, Error]:
        return Null()


@final
@dataclass
class AstExpressionLiteral(AstExpression):
    location: Optional[SourceLocation]
    data: Bits

    def __str__(self):
        return str(self.data)

    def eval(self, scope: Set) -> Union[Value, Error]:
        return self.data


@final
@dataclass
class AstExpressionScope(AstExpression):
    location: Optional[SourceLocation]

    def __str__(self):
        return str(TokenKind.SCOPE)

    def eval(self, scope: Set) -> Union[Value, Error]:
        return scope


@final
@dataclass
class AstExpressionSet(AstExpression):
    location: Optional[SourceLocation]
    elements: list[Tuple[AstExpression, AstExpression]]

    def __str__(self):
        elements = "; ".join([f"{str(k)}={str(v)}" for k, v in self.elements])
        return f"{{{elements}}}"

    def eval(self, scope: Set) -> Union[Value, Error]:
        elements: dict[Bits, Value] = dict()
        for k, v in self.elements:
            k_result = k.eval(scope)
            if isinstance(k_result, Error):
                return k_result
            if not isinstance(k_result, Bits):
                return Error(
                    k.location,
                    ErrorKind.KEY_TYPE,
                    f"attempted to use {typename(k_result)} value {k_result} as a set key",
                )
            v_result = v.eval(scope)
            if isinstance(v_result, Error):
                return v_result
            elements[k_result] = v_result
        return Set(elements)


@final
@dataclass
class AstExpressionFunction(AstExpression):
    location: Optional[SourceLocation]
    pattern: AstExpression
    body: AstExpression

    def __str__(self):
        return f"({self.pattern}:{self.body})"

    def eval(self, scope: Set) -> Union[Value, Error]:
        # The pattern is evaluated once, when the function is created.
        pattern = self.pattern.eval(scope)
        if isinstance(pattern, Error):
            return pattern
        if not isinstance(pattern, Bits):
            return Error(
                self.pattern.location,
                ErrorKind.KEY_TYPE,
                f"attempted to bind function argument to {typename(pattern)} value {pattern}",
            )
        return Function(self, scope, pattern)


@final
@dataclass
class AstExpressionCombine(AstExpression):
    location: Optional[SourceLocation]
    left: AstExpression
    right: AstExpression

    def __str__(self):
        return f"({self.left} {self.right})"

    def eval(self, scope: Set) -> Union[Value, Error]:
        left = self.left.eval(scope)
        if isinstance(left, Error):
            return left
        right = self.right.eval(scope)
        if isinstance(right, Error):
            return right
        return combine(self.location, left, right)


def call(
    location: Optional[SourceLocation],
    function: Function,
    argument: Value,
) -> Union[Value, Error]:
    scope = function.scope.merge(Set({function.pattern: argument}))
    result = function.ast.body.eval(scope)
    if isinstance(result, Error):
        result.trace.append(Error.TraceElement(location, function))
    return result


def fold(
    location: Optional[SourceLocation],
    elements: Iterable[Value],
    function: Function,
) -> Union[Value, Error]:
    accumulator: Optional[Value] = None
    for element in elements:
        result = call(location, function, element)
        if isinstance(result, Error):
            return result
        if accumulator is None:
            accumulator = result
            continue
        accumulator = combine(location, accumulator, result)
        if isinstance(accumulator, Error):
            return accumulator
    return accumulator if accumulator is not None else Null()


def slice_bits(
    location: Optional[SourceLocation],
    bits: Bits,
    bounds: Set,
) -> Union[Value, Error]:
    indices: list[int] = list()
    for key, name in ((CONST_BITS_ZERO, "start"), (CONST_BITS_ONE, "stop")):
        bound = bounds.get(key)
        if not isinstance(bound, Bits):
            return Error(
                location,
                ErrorKind.INVALID_SLICE,
                f"expected bits value for slice {name} at key {key}, received {typename(bound)}",
            )
        indices.append(decode(bound))
    start, stop = indices
    if not (start <= stop <= bits.length):
        return Error(
            location,
            ErrorKind.INVALID_SLICE,
            f"invalid slice [{start}:{stop}] of {bits.length}-bit value",
        )
    return bits.slice(start, stop)


def combine(
    location: Optional[SourceLocation],
    a: Value,
    b: Value,
) -> Union[Value, Error]:
    match a, b:
        case Bits(), Bits():
            return a.concat(b)
        case Bits(), Set():
            return slice_bits(location, a, b)
        case Bits(), Function():
            return fold(location, (encode(bit) for bit in a), b)
        case Bits(), Null():
            return encode(a.length)
        case Set(), Null():
            return a.keyset()
        case Set(), Bits():
            return a.get(b)
        case Set(), Set():
            return a.merge(b)
        case Set(), Function():
            return fold(location, a.data.values(), b)
        case Null(), _:
            return encode(b.tag())
        case Function(), _:
            return call(location, a, b)
    return Error(
        location,
        ErrorKind.UNSUPPORTED_COMBINATION,
        f"attempted to combine {typename(a)} value {a} with {typename(b)} value {b}",
    )


class Parser:
    ParseNud = Callable[["Parser"], AstExpression]
    ParseLed = Callable[["Parser", Optional[AstExpression]], AstExpression]

    def __init__(self, lexer: Lexer):
        self.lexer: Lexer = lexer
        self.current_token: Token = Token(TokenKind.EOF, "DEFAULT CURRENT TOKEN")

        self._advance_token()

        self.parse_nud_functions: dict[TokenKind, Parser.ParseNud] = dict()
        self.parse_led_functions: dict[TokenKind, Parser.ParseLed] = dict()

        self._register_nud(TokenKind.BITS, Parser.parse_expression_literal)
        self._register_nud(TokenKind.SCOPE, Parser.parse_expression_scope)
        self._register_nud(TokenKind.LPAREN, Parser.parse_expression_grouped)
        self._register_nud(TokenKind.LBRACE, Parser.parse_expression_set)

        self._register_led(TokenKind.COLON, Parser.parse_expression_function)

    def _register_nud(self, kind: TokenKind, parse: "Parser.ParseNud") -> None:
        self.parse_nud_functions[kind] = parse

    def _register_led(self, kind: TokenKind, parse: "Parser.ParseLed") -> None:
        self.parse_led_functions[kind] = parse

    def _advance_token(self) -> Token:
        current_token = self.current_token
        self.current_token = self.lexer.next_token()
        return current_token

    def _check_current(self, kind: TokenKind) -> bool:
        return self.current_token.kind == kind

    def _expect_current(self, kind: TokenKind) -> Token:
        current = self.current_token
        if current.kind != kind:
            raise ParseError(
                current.location, f"expected {quote(kind)}, found {quote(current)}"
            )
        self._advance_token()
        return current

    @staticmethod
    def _fold(
        branch: Optional[AstExpression], operand: AstExpression
    ) -> AstExpression:
        if branch is None:
            return operand
        return AstExpressionCombine(branch.location, branch, operand)

    def parse_program(self) -> AstProgram:
        location = self.current_token.location
        try:
            expression = self.parse_group()
        except RecursionError:
            raise ParseError(location, "expression is nested too deeply")
        if not self._check_current(TokenKind.EOF):
            raise ParseError(
                self.current_token.location,
                f"expected end-of-file, found {quote(self.current_token)}",
            )
        return AstProgram(location, expression or AstExpressionNull(location))

    def parse_group(self) -> Optional[AstExpression]:
        """
        Parse a left-associative chain of combined operands, stopping without
        consuming the token that ends the group. Returns None for an empty
        group.
        """
        branch: Optional[AstExpression] = None
        while True:
            kind = self.current_token.kind
            parse_nud = self.parse_nud_functions.get(kind)
            if parse_nud is not None:
                branch = Parser._fold(branch, parse_nud(self))
                continue
            parse_led = self.parse_led_functions.get(kind)
            if parse_led is not None:
                branch = parse_led(self, branch)
                continue
            return branch

    def parse_expression_literal(self) -> AstExpressionLiteral:
        token = self._expect_current(TokenKind.BITS)
        assert token.bits is not None
        return AstExpressionLiteral(token.location, token.bits)

    def parse_expression_scope(self) -> AstExpressionScope:
        location = self._expect_current(TokenKind.SCOPE).location
        return AstExpressionScope(location)

    def parse_expression_grouped(self) -> AstExpression:
        location = self._expect_current(TokenKind.LPAREN).location
        expression = self.parse_group()
        self._expect_current(TokenKind.RPAREN)
        return expression or AstExpressionNull(location)

    def parse_expression_set(self) -> AstExpressionSet:
        location = self._expect_current(TokenKind.LBRACE).location
        elements: list[Tuple[AstExpression, AstExpression]] = list()
        index = 0  # next implicit key
        while not self._check_current(TokenKind.RBRACE):
            if self._check_current(TokenKind.EOF):
                raise ParseError(
                    location,
                    f"unterminated set, expected {quote(TokenKind.RBRACE)} before end-of-file",
                )
            key: Optional[AstExpression] = None
            value = self.parse_group()
            if self._check_current(TokenKind.ASSIGN):
                assign = self._expect_current(TokenKind.ASSIGN)
                if value is None:
                    raise ParseError(
                        assign.location,
                        f"expected set key before {quote(TokenKind.ASSIGN)}",
                    )
                key = value
                value = self.parse_group()
                if value is None:
                    raise ParseError(
                        assign.location,
                        f"expected set value after {quote(TokenKind.ASSIGN)}",
                    )
            if self._check_current(TokenKind.ASSIGN) or self._check_current(
                TokenKind.RPAREN
            ):
                raise ParseError(
                    self.current_token.location,
                    f"expected {quote(TokenKind.SEMICOLON)} or {quote(TokenKind.RBRACE)}, found {quote(self.current_token)}",
                )
            if value is not None:
                if key is None:
                    key = AstExpressionLiteral(value.location, encode(index))
                    index += 1
                elements.append((key, value))
            if self._check_current(TokenKind.SEMICOLON):
                self._advance_token()
        self._expect_current(TokenKind.RBRACE)
        return AstExpressionSet(location, elements)

    def parse_expression_function(
        self, branch: Optional[AstExpression]
    ) -> AstExpression:
        colon = self._expect_current(TokenKind.COLON)
        # The most recently combined operand is the argument pattern.
        outer: Optional[AstExpression]
        if isinstance(branch, AstExpressionCombine):
            outer, pattern = branch.left, branch.right
        elif branch is not None:
            outer, pattern = None, branch
        else:
            raise ParseError(
                colon.location,
                f"expected function pattern before {quote(TokenKind.COLON)}",
            )
        body = self.parse_group()
        function = AstExpressionFunction(
            pattern.location, pattern, body or AstExpressionNull(colon.location)
        )
        return Parser._fold(outer, function)


def parse_source(source: str, loc: Optional[SourceLocation] = None) -> AstProgram:
    lexer = Lexer(source, loc)
    parser = Parser(lexer)
    return parser.parse_program()


def eval_source(
    source: str,
    scope: Optional[Set] = None,
    loc: Optional[SourceLocation] = None,
) -> Union[Value, Error]:
    return parse_source(source, loc).eval(scope)


def read_source(path: Union[str, os.PathLike]) -> str:
    # Newlines are kept as written so quoted literals see the raw bytes.
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()


def eval_file(
    path: Union[str, os.PathLike],
    scope: Optional[Set] = None,
) -> Union[Value, Error]:
    return eval_source(read_source(path), scope, SourceLocation(str(path), 1))


def dump(source: str, loc: Optional[SourceLocation], file: TextIO) -> None:
    print("TOKENS", file=file)
    for token in tokenize(source, loc):
        location = f"[{token.location}] " if token.location is not None else ""
        bits = f" {token.bits}" if token.bits is not None else ""
        print(f"{location}{token.kind.name} {quote(token)}{bits}", file=file)
    print(file=file)
    print("TREE", file=file)
    print(parse_source(source, loc), file=file)
    print(file=file)


def print_error(error: Error, file: TextIO) -> None:
    if error.location is not None:
        print(f"[{error.location}] error: {error}", file=file)
    else:
        print(f"error: {error}", file=file)
    for element in error.trace:
        s = f"...within {element.function}"
        if element.location is not None:
            s += f" called from {element.location}"
        print(s, file=file)


class Repl(code.InteractiveConsole):
    def __init__(self, scope: Optional[Set] = None):
        super().__init__()
        self.scope = scope if scope is not None else Set()

    def runsource(self, source, filename="<input>", symbol="single"):
        if len(source.strip()) == 0:
            return False
        try:
            program = parse_source(source)
        except ParseError as e:
            if not source.endswith("\n"):
                # Assume the user has not finished entering their expression,
                # e.g. an open set or group, and wait for an additional newline
                # before producing an error.
                return True
            print(f"error: {e}")
            return False
        result = program.eval(self.scope)
        if isinstance(result, Error):
            print_error(result, sys.stdout)
        else:
            print(result)
        return False


def main() -> None:
    description = "Nick's Language"
    parser = ArgumentParser(description=description)
    parser.add_argument("file", type=str, nargs="?", default=None)
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="print the tokens and expression tree to stderr before evaluating",
    )
    parser.add_argument(
        "--recursion-limit",
        type=int,
        default=None,
        metavar="N",
        help="maximum interpreter recursion depth",
    )
    args = parser.parse_args()

    if args.recursion_limit is not None:
        sys.setrecursionlimit(args.recursion_limit)

    if args.file is not None:
        try:
            source = read_source(args.file)
            loc = SourceLocation(args.file, 1)
            if args.debug:
                dump(source, loc, sys.stderr)
            result = eval_source(source, None, loc)
        except AssertionError:
            raise
        except Exception as e:
            print(f"error: {e}", file=sys.stderr)
            sys.exit(1)
        if isinstance(result, Error):
            print_error(result, sys.stderr)
            sys.exit(1)
        print(f"{typename(result)} {result}")
    else:
        HISTFILE = Path.home() / ".nl-history"
        HISTFILE_SIZE = 4096
        if readline and os.path.exists(HISTFILE):
            readline.read_history_file(HISTFILE)
        repl = Repl()
        repl.interact(banner="", exitmsg="")
        if readline:
            readline.set_history_length(HISTFILE_SIZE)
            readline.write_history_file(HISTFILE)


if __name__ == "__main__":
    main()
