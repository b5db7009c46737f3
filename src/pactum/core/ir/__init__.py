"""
pactum Intermediate Representation (IR) types.

This package contains all IR type definitions: the data model schema,
the expression and clause logic ASTs, the grammar AST, the drafted
document tree and the archive signature block.

All types are re-exported from this package.
"""

# Data model
from .concepts import (
    PRIMITIVE_NAMES,
    DeclarationKind,
    DeclarationSpec,
    Decorator,
    ImportSpec,
    ModelFile,
    NumberRange,
    PrimitiveKind,
    PropertySpec,
)

# Document tree
from .document import (
    Block,
    ConditionalRun,
    Document,
    FormulaRun,
    TextRun,
    VariableRun,
)

# Expressions
from .expressions import (
    DURATION_UNITS,
    BinaryExpr,
    BinaryOp,
    DurationLiteral,
    Expr,
    FieldRef,
    FuncCall,
    IfExpr,
    InExpr,
    ListExpr,
    Literal,
    RecordExpr,
    UnaryExpr,
    UnaryOp,
)

# Grammar
from .grammar import (
    BlockKind,
    ConditionalNode,
    FormulaNode,
    GrammarBlock,
    GrammarNode,
    GrammarSpec,
    TextNode,
    VariableNode,
    WithNode,
)

# Clause logic
from .logic import (
    ClauseDecl,
    ContractDecl,
    EmitStmt,
    EnforceStmt,
    IfStmt,
    LetStmt,
    LogicModule,
    ParamSpec,
    ReturnStmt,
    SetStateStmt,
    Stmt,
    ThrowStmt,
)

# Archive signature
from .signature import AuthorSignature

__all__ = [
    # Data model
    "PRIMITIVE_NAMES",
    "DeclarationKind",
    "DeclarationSpec",
    "Decorator",
    "ImportSpec",
    "ModelFile",
    "NumberRange",
    "PrimitiveKind",
    "PropertySpec",
    # Document tree
    "Block",
    "ConditionalRun",
    "Document",
    "FormulaRun",
    "TextRun",
    "VariableRun",
    # Expressions
    "DURATION_UNITS",
    "BinaryExpr",
    "BinaryOp",
    "DurationLiteral",
    "Expr",
    "FieldRef",
    "FuncCall",
    "IfExpr",
    "InExpr",
    "ListExpr",
    "Literal",
    "RecordExpr",
    "UnaryExpr",
    "UnaryOp",
    # Grammar
    "BlockKind",
    "ConditionalNode",
    "FormulaNode",
    "GrammarBlock",
    "GrammarNode",
    "GrammarSpec",
    "TextNode",
    "VariableNode",
    "WithNode",
    # Clause logic
    "ClauseDecl",
    "ContractDecl",
    "EmitStmt",
    "EnforceStmt",
    "IfStmt",
    "LetStmt",
    "LogicModule",
    "ParamSpec",
    "ReturnStmt",
    "SetStateStmt",
    "Stmt",
    "ThrowStmt",
    # Archive signature
    "AuthorSignature",
]
