from .config import ConfigManager
from .exceptions import (
    GherkinCoreError,
    ConfigurationError,
    TagFilterError,
    EmptyTagExpressionError,
    UnexpectedTokenError,
    UnexpectedEndOfExpressionError,
    MissingClosingParenthesisError,
    ParameterTypeError,
    DuplicateParameterTypeError,
    UnknownParameterTypeError,
    ExpressionError,
    StepMatchError,
    UndefinedStepError,
    AmbiguousStepError,
    StepTypeMismatchError,
    PendingStepError,
)

__all__ = [
    # Configuration
    "ConfigManager",

    # Exceptions
    "GherkinCoreError",
    "ConfigurationError",
    "TagFilterError",
    "EmptyTagExpressionError",
    "UnexpectedTokenError",
    "UnexpectedEndOfExpressionError",
    "MissingClosingParenthesisError",
    "ParameterTypeError",
    "DuplicateParameterTypeError",
    "UnknownParameterTypeError",
    "ExpressionError",
    "StepMatchError",
    "UndefinedStepError",
    "AmbiguousStepError",
    "StepTypeMismatchError",
    "PendingStepError",
]
