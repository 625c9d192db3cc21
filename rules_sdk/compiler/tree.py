"""
Expression tree builder.

Parses tokenized rule syntax into an ``ExpressionNode`` tree with a
precedence-climbing parser. Tiers, loosest first:

    AND
    OR
    NOT                       (prefix)
    = += -= *= /=             (TRU: target only, effects only)
    == != < > <= >=           (non-associative)
    + -
    * /
    primary                   (literal, reference, parenthesized group)

Binary chains within a tier fold left to right. Parentheses only group,
so redundant pairs such as ``((a))`` leave no trace in the tree.
"""

from rules_sdk.compiler.encoding import (
    UINT256_MAX,
    is_decimal,
    is_hex,
    is_numeric_hex,
)
from rules_sdk.compiler.references import ReferenceResolver
from rules_sdk.compiler.tokenizer import Token, TokenKind, tokenize
from rules_sdk.core.config import settings
from rules_sdk.core.errors import MalformedExpressionError
from rules_sdk.domain.enums import ASSIGNMENT_OPERATORS, Operator, RawDataKind
from rules_sdk.domain.models import (
    BinaryNode,
    ExpressionNode,
    NumberLiteral,
    ReferenceNode,
    TextLiteral,
    TrackerUpdateNode,
    UnaryNode,
)

COMPARISON_OPERATORS = frozenset(
    {Operator.EQ, Operator.NEQ, Operator.LT, Operator.GT, Operator.LTE, Operator.GTE}
)
ADDITIVE_OPERATORS = frozenset({Operator.ADD, Operator.SUB})
MULTIPLICATIVE_OPERATORS = frozenset({Operator.MUL, Operator.DIV})

BOOLEAN_LITERALS = {"true": 1, "false": 0}


def build_expression_tree(
    expression: str,
    resolver: ReferenceResolver,
    *,
    allow_updates: bool = False,
    max_length: int | None = None,
    max_depth: int | None = None,
) -> ExpressionNode:
    """
    Parse rule syntax into an expression tree.

    Args:
        expression: Condition or expression-effect text
        resolver: Binds references against the rule's name tables
        allow_updates: Permit ``TRU:`` update clauses (effects only)
        max_length: Longest accepted text (default ``settings.max_expression_length``)
        max_depth: Deepest accepted parenthesis nesting and operator depth of
                   the tree (default ``settings.max_nesting_depth``)

    Returns:
        Root node of the tree

    Raises:
        MalformedExpressionError: If the text cannot be parsed
        UnresolvedReferenceError: If a prefixed reference is unknown

    Example:
        >>> tree = build_expression_tree("3 + 4 > 5", ReferenceResolver())
        >>> tree.operator
        <Operator.GT: '>'>
    """
    max_length = settings.max_expression_length if max_length is None else max_length
    max_depth = settings.max_nesting_depth if max_depth is None else max_depth

    if len(expression) > max_length:
        raise MalformedExpressionError(
            f"Expression exceeds maximum length of {max_length}",
            details={"length": len(expression), "max_length": max_length},
        )
    if not expression.strip():
        raise MalformedExpressionError("Expression cannot be empty", details={"expression": ""})

    tokens = tokenize(resolver.resolve(expression))
    parser = _Parser(tokens, resolver, expression, allow_updates=allow_updates, max_depth=max_depth)
    return parser.parse()


def _children(node: ExpressionNode) -> tuple[ExpressionNode, ...]:
    if isinstance(node, TrackerUpdateNode):
        return (node.target, node.value)
    if isinstance(node, ReferenceNode):
        return () if node.key is None else (node.key,)
    if isinstance(node, UnaryNode):
        return (node.operand,)
    if isinstance(node, BinaryNode):
        return (node.left, node.right)
    return ()


def _walk(node: ExpressionNode):
    """Yield every node of the subtree with its depth below ``node``."""
    stack = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        yield current, depth
        stack.extend((child, depth + 1) for child in _children(current))


def tree_depth(node: ExpressionNode) -> int:
    """Number of operator levels above the deepest leaf."""
    return max(depth for _, depth in _walk(node))


def contains_update(node: ExpressionNode) -> bool:
    """True if any node in the subtree reads or writes through a ``TRU:`` reference."""
    return any(
        isinstance(current, TrackerUpdateNode)
        or (isinstance(current, ReferenceNode) and current.binding.is_update)
        for current, _ in _walk(node)
    )


class _Parser:
    def __init__(
        self,
        tokens: list[Token],
        resolver: ReferenceResolver,
        expression: str,
        *,
        allow_updates: bool,
        max_depth: int,
    ):
        self.tokens = tokens
        self.index = 0
        self.resolver = resolver
        self.expression = expression
        self.allow_updates = allow_updates
        self.max_depth = max_depth
        self.depth = 0

    # -------------------------------------------------------------------------
    # Token helpers
    # -------------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _current_operator(self, allowed: frozenset) -> Operator | None:
        token = self.current
        if token.kind != TokenKind.OPERATOR:
            return None
        operator = Operator(token.value)
        return operator if operator in allowed else None

    def _error(self, message: str, token: Token | None = None) -> MalformedExpressionError:
        token = token or self.current
        return MalformedExpressionError(
            message,
            details={
                "expression": self.expression,
                "position": token.position,
                "token": token.value,
            },
        )

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def parse(self) -> ExpressionNode:
        node = self._parse_and()
        if self.current.kind != TokenKind.END:
            if self.current.kind == TokenKind.RPAREN:
                raise self._error("Unbalanced parentheses: unexpected ')'")
            raise self._error(f"Unexpected token '{self.current.value}'")
        if tree_depth(node) > self.max_depth:
            raise self._error(
                f"Expression nests deeper than the maximum depth of {self.max_depth}",
                self.tokens[0],
            )
        return node

    def _parse_and(self) -> ExpressionNode:
        node = self._parse_or()
        while self.current.kind == TokenKind.AND:
            self._advance()
            node = BinaryNode(Operator.AND, node, self._parse_or())
        return node

    def _parse_or(self) -> ExpressionNode:
        node = self._parse_not()
        while self.current.kind == TokenKind.OR:
            self._advance()
            node = BinaryNode(Operator.OR, node, self._parse_not())
        return node

    def _parse_not(self) -> ExpressionNode:
        negations = []
        while self.current.kind == TokenKind.NOT:
            negations.append(self._advance())
        node = self._parse_clause()
        for token in reversed(negations):
            if isinstance(node, TrackerUpdateNode):
                raise self._error("NOT cannot be applied to a tracker update", token)
            node = UnaryNode(Operator.NOT, node)
        return node

    def _parse_clause(self) -> ExpressionNode:
        start = self.current
        node = self._parse_comparison()
        operator = self._current_operator(ASSIGNMENT_OPERATORS)
        if operator is None:
            if contains_update(node):
                raise self._error(
                    "Tracker update references (TRU:) must be the target of an assignment",
                    start,
                )
            return node

        token = self._advance()
        if not self.allow_updates:
            raise self._error("Tracker updates are only allowed in effects", token)
        if not (isinstance(node, ReferenceNode) and node.binding.is_update):
            raise self._error("Assignment target must be a tracker update (TRU:name)", token)
        if node.key is not None and contains_update(node.key):
            raise self._error("Mapped tracker key cannot contain a tracker update", token)
        value = self._parse_comparison()
        if contains_update(value):
            raise self._error("Assigned value cannot contain a tracker update", token)
        if self._current_operator(ASSIGNMENT_OPERATORS) is not None:
            raise self._error("Only one assignment is allowed per clause")
        return TrackerUpdateNode(operator, node, value)

    def _parse_comparison(self) -> ExpressionNode:
        node = self._parse_additive()
        operator = self._current_operator(COMPARISON_OPERATORS)
        if operator is None:
            return node
        self._advance()
        node = BinaryNode(operator, self._operand(node), self._operand(self._parse_additive()))
        if self._current_operator(COMPARISON_OPERATORS) is not None:
            raise self._error("Comparisons cannot be chained; use parentheses")
        return node

    def _parse_additive(self) -> ExpressionNode:
        node = self._parse_multiplicative()
        while (operator := self._current_operator(ADDITIVE_OPERATORS)) is not None:
            self._advance()
            right = self._parse_multiplicative()
            node = BinaryNode(operator, self._operand(node), self._operand(right))
        return node

    def _parse_multiplicative(self) -> ExpressionNode:
        node = self._parse_primary()
        while (operator := self._current_operator(MULTIPLICATIVE_OPERATORS)) is not None:
            self._advance()
            right = self._parse_primary()
            node = BinaryNode(operator, self._operand(node), self._operand(right))
        return node

    def _operand(self, node: ExpressionNode) -> ExpressionNode:
        if isinstance(node, TrackerUpdateNode):
            raise self._error("A tracker update cannot be used as an operand")
        return node

    def _parse_primary(self) -> ExpressionNode:
        token = self.current

        if token.kind == TokenKind.LPAREN:
            return self._parse_group()
        if token.kind == TokenKind.STRING:
            self._advance()
            return TextLiteral(token.value)
        if token.kind == TokenKind.WORD:
            return self._parse_word()

        if token.kind == TokenKind.END:
            raise self._error("Expression ended where an operand was expected")
        if token.kind == TokenKind.RPAREN:
            raise self._error("Empty operand before ')'")
        raise self._error(f"Expected an operand, found '{token.value}'")

    def _parse_group(self) -> ExpressionNode:
        opening = self._advance()
        self.depth += 1
        if self.depth > self.max_depth:
            raise self._error(f"Nesting exceeds maximum depth of {self.max_depth}", opening)
        node = self._parse_and()
        if self.current.kind != TokenKind.RPAREN:
            raise self._error("Unbalanced parentheses: missing ')'", opening)
        self._advance()
        self.depth -= 1
        return node

    def _parse_word(self) -> ExpressionNode:
        token = self._advance()
        word = token.value

        if word in BOOLEAN_LITERALS:
            return NumberLiteral(BOOLEAN_LITERALS[word])
        if is_decimal(word) or is_numeric_hex(word):
            value = int(word, 0) if word.startswith("0x") else int(word)
            if value > UINT256_MAX:
                raise self._error(f"Numeric literal {word} does not fit in uint256", token)
            return NumberLiteral(value)
        if is_hex(word):
            if len(word) % 2:
                raise self._error(f"Hex literal {word} has an odd number of digits", token)
            return TextLiteral(word.lower(), RawDataKind.BYTES)

        binding = self.resolver.bind(word)
        if binding is not None:
            if not binding.mapped:
                return ReferenceNode(binding)
            if self.current.kind != TokenKind.LPAREN:
                raise self._error(f"Mapped tracker '{binding.name}' must be read with a key", token)
            return ReferenceNode(binding, key=self._operand(self._parse_group()))

        # Consecutive unbound words form one literal ("bORe test")
        words = [word]
        while self.current.kind == TokenKind.WORD and self._is_plain_word(self.current.value):
            words.append(self._advance().value)
        return TextLiteral(" ".join(words))

    def _is_plain_word(self, word: str) -> bool:
        if word in BOOLEAN_LITERALS or is_decimal(word) or is_hex(word):
            return False
        return self.resolver.bind(word) is None
