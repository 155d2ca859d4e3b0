from typing import List, Optional


class GherkinCoreError(Exception):
    """Base exception for gherkin-core"""
    pass


class ConfigurationError(GherkinCoreError):
    """Configuration-related errors, raised before a run starts"""
    pass


class TagFilterError(ConfigurationError):
    """A tag filter expression could not be built"""
    pass


class EmptyTagExpressionError(TagFilterError):
    """Tag filter expression is empty or whitespace only"""

    def __init__(self):
        super().__init__("Tag filter expression is empty.")


class UnexpectedTokenError(TagFilterError):
    """An unknown word, stray character or misplaced token"""

    def __init__(self, token: str, position: int):
        self.token = token
        self.position = position
        super().__init__(f'Unexpected token "{token}" at position {position}.')


class UnexpectedEndOfExpressionError(TagFilterError):
    """The expression ended after an operator"""

    def __init__(self):
        super().__init__("Tag filter expression ended unexpectedly.")


class MissingClosingParenthesisError(TagFilterError):
    """An opening parenthesis was never closed"""

    def __init__(self):
        super().__init__("Missing closing parenthesis in tag filter expression.")


class ParameterTypeError(ConfigurationError):
    """Parameter type registry errors"""
    pass


class DuplicateParameterTypeError(ParameterTypeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Parameter type '{name}' is already registered.")


class UnknownParameterTypeError(ParameterTypeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown parameter type '{{{name}}}'. Register it before use.")


class ExpressionError(ConfigurationError):
    """A cucumber expression is malformed"""
    pass


class StepMatchError(GherkinCoreError):
    """A step text could not be resolved to exactly one definition"""

    def __init__(self, step_text: str, message: str):
        self.step_text = step_text
        super().__init__(message)


class UndefinedStepError(StepMatchError):
    def __init__(self, step_text: str):
        super().__init__(
            step_text,
            f'Undefined step: "{step_text}". No matching step definition was found.'
        )


class AmbiguousStepError(StepMatchError):
    def __init__(self, step_text: str, match_descriptions: Optional[List[str]] = None):
        self.match_descriptions = list(match_descriptions or [])
        matches = "\n".join(f"  - {description}" for description in self.match_descriptions)
        super().__init__(
            step_text,
            f'Ambiguous step: "{step_text}". Multiple definitions match:\n{matches}'
        )


class StepTypeMismatchError(StepMatchError):
    def __init__(self, step_text: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            step_text,
            f'Type mismatch in step: "{step_text}". Expected {expected}, got "{actual}".'
        )


class PendingStepError(GherkinCoreError):
    """Raised by a step handler whose implementation is not written yet"""

    def __init__(self, message: str = "Step implementation pending"):
        self.message = message
        super().__init__(message)
