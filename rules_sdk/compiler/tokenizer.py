"""Lexer for rule syntax."""

import re
from dataclasses import dataclass
from enum import Enum

from rules_sdk.core.errors import MalformedExpressionError


class TokenKind(str, Enum):
    WORD = "WORD"
    STRING = "STRING"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    END = "END"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    position: int


KEYWORDS = {"AND": TokenKind.AND, "OR": TokenKind.OR, "NOT": TokenKind.NOT}

# Longest operators first so "==" is never read as two "="
_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<string>"[^"]*"|'[^']*')
  | (?P<operator>\+=|-=|\*=|/=|==|!=|>=|<=|[-+*/<>=])
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<word>[^\s()+\-*/<>=!"']+)
    """,
    re.VERBOSE,
)


def tokenize(text: str) -> list[Token]:
    """
    Split rule text into tokens, terminated by an END token.

    Raises:
        MalformedExpressionError: On characters no token can start with
                                  (an unterminated quote, a lone ``!``)
    """
    tokens: list[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise MalformedExpressionError(
                f"Unexpected character {text[position]!r} at position {position}",
                details={"expression": text, "position": position},
            )
        group = match.lastgroup
        value = match.group()
        if group == "string":
            tokens.append(Token(TokenKind.STRING, value[1:-1], position))
        elif group == "operator":
            tokens.append(Token(TokenKind.OPERATOR, value, position))
        elif group == "lparen":
            tokens.append(Token(TokenKind.LPAREN, value, position))
        elif group == "rparen":
            tokens.append(Token(TokenKind.RPAREN, value, position))
        elif group == "word":
            tokens.append(Token(KEYWORDS.get(value, TokenKind.WORD), value, position))
        position = match.end()
    tokens.append(Token(TokenKind.END, "", len(text)))
    return tokens
