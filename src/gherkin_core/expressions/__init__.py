from .parameter_types import ParameterType, ParameterTypeRegistry
from .cucumber_expression import CucumberExpression, CucumberMatch, ExpressionParser
from .matcher import PatternKind, StepPattern, StepMatcher, MatchCandidate

__all__ = [
    "ParameterType",
    "ParameterTypeRegistry",
    "CucumberExpression",
    "CucumberMatch",
    "ExpressionParser",
    "PatternKind",
    "StepPattern",
    "StepMatcher",
    "MatchCandidate",
]
