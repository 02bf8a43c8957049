"""Parser for the exprassert expression language.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. ?: (ternary), ?: (elvis)
2. || (or)
3. && (and)
4. == != < <= > >= in not_in matches
5. + -
6. * / %
7. ! (not) - (unary)
8. . ?. (member access, method call) [] (index)

AST nodes are frozen so a parsed expression can be shared between threads.
"""

from dataclasses import dataclass
from typing import Any

from exprassert.expressions.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null)."""
    value: Any


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A property of the root object."""
    name: str


@dataclass(frozen=True)
class MemberAccess(ASTNode):
    """Dot notation member access (e.g., customer.name, order?.total)."""
    object: ASTNode
    member: str
    null_safe: bool = False


@dataclass(frozen=True)
class MethodCall(ASTNode):
    """Method invocation on an object (e.g., name.startswith('A'))."""
    object: ASTNode
    name: str
    arguments: tuple[ASTNode, ...]
    null_safe: bool = False


@dataclass(frozen=True)
class IndexAccess(ASTNode):
    """Bracket notation index access (e.g., items[0], data["key"])."""
    object: ASTNode
    index: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x == y)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: str
    operand: ASTNode


@dataclass(frozen=True)
class Ternary(ASTNode):
    """Conditional expression (e.g., a > 0 ? a : b)."""
    condition: ASTNode
    if_true: ASTNode
    if_false: ASTNode


@dataclass(frozen=True)
class Elvis(ASTNode):
    """Fallback for null or empty string (e.g., nickname ?: name)."""
    value: ASTNode
    fallback: ASTNode


@dataclass(frozen=True)
class FunctionCall(ASTNode):
    """Unqualified call, dispatched to a method of the root object (e.g., greet(name))."""
    name: str
    arguments: tuple[ASTNode, ...]


@dataclass(frozen=True)
class HelperCall(ASTNode):
    """Registered helper function call (e.g., #isEven(count))."""
    name: str
    arguments: tuple[ASTNode, ...]


@dataclass(frozen=True)
class VariableReference(ASTNode):
    """Context variable (e.g., #this, #root)."""
    name: str


@dataclass(frozen=True)
class ServiceReference(ASTNode):
    """Externally resolved named service (e.g., @registry)."""
    name: str


@dataclass(frozen=True)
class ArrayLiteral(ASTNode):
    """Array literal (e.g., [1, 2, 3], ["a", "b"])."""
    elements: tuple[ASTNode, ...]


@dataclass(frozen=True)
class ObjectLiteral(ASTNode):
    """Object literal (e.g., {"key": value})."""
    pairs: tuple[tuple[str, ASTNode], ...]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(Exception):
    """Error during parsing."""

    def __init__(self, message: str, token: Token):
        self.token = token
        self.position = token.position
        super().__init__(f"{message} at position {token.position}")


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        parser = Parser('first > second && #isEven(first)')
        ast = parser.parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.lexer = Lexer(source)
        self.tokens = self.lexer.tokenize()
        self.position = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if not self.tokens or self.tokens[0].type == TokenType.EOF:
            raise ParseError("Empty expression", Token(TokenType.EOF, None, 0))

        ast = self._parse_conditional()

        if not self._is_at_end():
            raise ParseError(
                f"Unexpected token '{self._current().value}'",
                self._current(),
            )

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise ParseError(message, self._current())

    # -------------------------------------------------------------------------
    # Parsing methods (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_conditional(self) -> ASTNode:
        """Parse ternary and elvis expressions (lowest precedence)."""
        expr = self._parse_or()

        if self._match(TokenType.QUESTION):
            self._advance()
            if_true = self._parse_conditional()
            self._consume(TokenType.COLON, "Expected ':' in conditional expression")
            if_false = self._parse_conditional()
            return Ternary(expr, if_true, if_false)

        if self._match(TokenType.ELVIS):
            self._advance()
            return Elvis(expr, self._parse_conditional())

        return expr

    def _parse_or(self) -> ASTNode:
        """Parse OR expression."""
        left = self._parse_and()

        while self._match(TokenType.OR):
            self._advance()
            right = self._parse_and()
            left = BinaryOp("||", left, right)

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_comparison()

        while self._match(TokenType.AND):
            self._advance()
            right = self._parse_comparison()
            left = BinaryOp("&&", left, right)

        return left

    def _parse_comparison(self) -> ASTNode:
        """Parse comparison expression (==, !=, <, <=, >, >=, in, not in, matches)."""
        left = self._parse_additive()

        comparison_ops = {
            TokenType.EQ: "==",
            TokenType.NEQ: "!=",
            TokenType.LT: "<",
            TokenType.LTE: "<=",
            TokenType.GT: ">",
            TokenType.GTE: ">=",
            TokenType.IN: "in",
            TokenType.NOT_IN: "not in",
            TokenType.MATCHES: "matches",
        }

        while self._current().type in comparison_ops:
            op_token = self._advance()
            op = comparison_ops[op_token.type]
            right = self._parse_additive()
            left = BinaryOp(op, left, right)

        return left

    def _parse_additive(self) -> ASTNode:
        """Parse additive expression (+, -)."""
        left = self._parse_multiplicative()

        while self._match(TokenType.PLUS, TokenType.MINUS):
            op = "+" if self._current().type == TokenType.PLUS else "-"
            self._advance()
            right = self._parse_multiplicative()
            left = BinaryOp(op, left, right)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        """Parse multiplicative expression (*, /, %)."""
        left = self._parse_unary()

        operators = {
            TokenType.MULTIPLY: "*",
            TokenType.DIVIDE: "/",
            TokenType.MODULO: "%",
        }

        while self._current().type in operators:
            op = operators[self._advance().type]
            right = self._parse_unary()
            left = BinaryOp(op, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, not, -)."""
        if self._match(TokenType.NOT):
            self._advance()
            operand = self._parse_unary()
            return UnaryOp("!", operand)

        if self._match(TokenType.MINUS):
            self._advance()
            operand = self._parse_unary()
            return UnaryOp("-", operand)

        return self._parse_postfix()

    def _parse_postfix(self) -> ASTNode:
        """Parse postfix expressions (member access, method call, index)."""
        expr = self._parse_primary()

        while True:
            if self._match(TokenType.DOT, TokenType.SAFE_DOT):
                null_safe = self._advance().type == TokenType.SAFE_DOT
                member_token = self._consume(
                    TokenType.IDENTIFIER, "Expected identifier after '.'"
                )
                name = str(member_token.value)
                if self._match(TokenType.LPAREN):
                    expr = MethodCall(expr, name, self._parse_arguments(), null_safe)
                else:
                    expr = MemberAccess(expr, name, null_safe)

            elif self._match(TokenType.LBRACKET):
                self._advance()
                index = self._parse_conditional()
                self._consume(TokenType.RBRACKET, "Expected ']' after index")
                expr = IndexAccess(expr, index)

            else:
                break

        return expr

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, references, groups)."""
        token = self._current()

        # Literals
        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.BOOLEAN):
            self._advance()
            return Literal(token.value)

        if token.type == TokenType.NULL:
            self._advance()
            return Literal(None)

        # Identifier (root property or root method call)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LPAREN):
                return FunctionCall(str(token.value), self._parse_arguments())
            return Identifier(str(token.value))

        # #function(...) or #variable
        if token.type == TokenType.HASH:
            self._advance()
            name_token = self._consume(TokenType.IDENTIFIER, "Expected name after '#'")
            if self._match(TokenType.LPAREN):
                return HelperCall(str(name_token.value), self._parse_arguments())
            return VariableReference(str(name_token.value))

        # @service or @'service.name'
        if token.type == TokenType.AT:
            self._advance()
            if self._match(TokenType.IDENTIFIER, TokenType.STRING):
                return ServiceReference(str(self._advance().value))
            raise ParseError("Expected service name after '@'", self._current())

        # Grouped expression
        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_conditional()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        # Array literal
        if token.type == TokenType.LBRACKET:
            return self._parse_array_literal()

        # Object literal
        if token.type == TokenType.LBRACE:
            return self._parse_object_literal()

        raise ParseError(f"Unexpected token '{token.value}'", token)

    def _parse_arguments(self) -> tuple[ASTNode, ...]:
        """Parse a parenthesised argument list."""
        self._consume(TokenType.LPAREN, "Expected '('")

        arguments: list[ASTNode] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_conditional())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_conditional())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")

        return tuple(arguments)

    def _parse_array_literal(self) -> ArrayLiteral:
        """Parse an array literal [a, b, c]."""
        self._consume(TokenType.LBRACKET, "Expected '['")

        elements: list[ASTNode] = []

        if not self._match(TokenType.RBRACKET):
            elements.append(self._parse_conditional())

            while self._match(TokenType.COMMA):
                self._advance()
                elements.append(self._parse_conditional())

        self._consume(TokenType.RBRACKET, "Expected ']' after array elements")

        return ArrayLiteral(tuple(elements))

    def _parse_object_literal(self) -> ObjectLiteral:
        """Parse an object literal {"key": value}."""
        self._consume(TokenType.LBRACE, "Expected '{'")

        pairs: list[tuple[str, ASTNode]] = []

        if not self._match(TokenType.RBRACE):
            pairs.append(self._parse_object_pair())

            while self._match(TokenType.COMMA):
                self._advance()
                pairs.append(self._parse_object_pair())

        self._consume(TokenType.RBRACE, "Expected '}' after object")

        return ObjectLiteral(tuple(pairs))

    def _parse_object_pair(self) -> tuple[str, ASTNode]:
        """Parse a key-value pair in an object literal."""
        # Key can be string or identifier
        if self._match(TokenType.STRING, TokenType.IDENTIFIER):
            key = str(self._advance().value)
        else:
            raise ParseError("Expected string or identifier as object key", self._current())

        self._consume(TokenType.COLON, "Expected ':' after object key")

        value = self._parse_conditional()

        return key, value


def parse(source: str) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string

    Returns:
        The AST root node
    """
    return Parser(source).parse()
