"""Embedded expression language for exprassert rules.

This module provides:
- Lexer: Tokenizes expression strings
- Parser: Produces AST from tokens
- Evaluator: Evaluates AST against an EvaluationContext
- compile_expression: Parses once into a reusable CompiledExpression
"""

from exprassert.expressions.evaluator import (
    CompiledExpression,
    Evaluator,
    compile_expression,
    evaluate,
    evaluate_bool,
)
from exprassert.expressions.lexer import Lexer, LexerError, Token, TokenType
from exprassert.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Elvis,
    FunctionCall,
    HelperCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    MethodCall,
    ObjectLiteral,
    ParseError,
    Parser,
    ServiceReference,
    Ternary,
    UnaryOp,
    VariableReference,
    parse,
)

__all__ = [
    # Evaluator
    "CompiledExpression",
    "Evaluator",
    "compile_expression",
    "evaluate",
    "evaluate_bool",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "BinaryOp",
    "Elvis",
    "FunctionCall",
    "HelperCall",
    "Identifier",
    "IndexAccess",
    "Literal",
    "MemberAccess",
    "MethodCall",
    "ObjectLiteral",
    "ParseError",
    "Parser",
    "ServiceReference",
    "Ternary",
    "UnaryOp",
    "VariableReference",
    "parse",
]
