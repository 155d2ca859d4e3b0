import re
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Pattern, Sequence, Union
import logging

from ..core.exceptions import AmbiguousStepError, UndefinedStepError
from .cucumber_expression import CucumberExpression
from .parameter_types import ParameterTypeRegistry

logger = logging.getLogger(__name__)


class PatternKind(IntEnum):
    """Matching tiers, consulted in ascending order"""
    EXACT = 0
    EXPRESSION = 1
    REGEX = 2


@dataclass(frozen=True)
class StepPattern:
    """The text pattern of a step definition"""
    kind: PatternKind
    source: str

    @classmethod
    def exact(cls, text: str) -> "StepPattern":
        return cls(PatternKind.EXACT, text)

    @classmethod
    def expression(cls, source: str) -> "StepPattern":
        return cls(PatternKind.EXPRESSION, source)

    @classmethod
    def regex(cls, source: Union[str, Pattern]) -> "StepPattern":
        return cls(PatternKind.REGEX, source.pattern if isinstance(source, re.Pattern) else source)

    @classmethod
    def infer(cls, pattern: Union[str, Pattern, "StepPattern"]) -> "StepPattern":
        """
        Pick the pattern kind for a decorator argument.

        Compiled patterns and strings anchored with both ``^`` and ``$`` are
        raw patterns; strings using ``{}``, ``()`` or ``/`` are cucumber
        expressions; anything else is an exact text.
        """
        if isinstance(pattern, StepPattern):
            return pattern
        if isinstance(pattern, re.Pattern):
            return cls.regex(pattern)
        if len(pattern) > 1 and pattern.startswith("^") and pattern.endswith("$"):
            return cls.regex(pattern)
        if any(char in pattern for char in "{}()/"):
            return cls.expression(pattern)
        return cls.exact(pattern)

    @property
    def tier(self) -> int:
        return int(self.kind)

    @property
    def description(self) -> str:
        if self.kind == PatternKind.REGEX:
            return f"/{self.source}/"
        return self.source

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class MatchCandidate:
    """One definition that matched a step text, with its captures"""
    definition: Any
    arguments: List[str]
    values: List[Any]


@lru_cache(maxsize=512)
def _compile_raw(source: str) -> Optional[Pattern]:
    try:
        return re.compile(source)
    except re.error as e:
        logger.debug(f"Ignoring malformed step pattern /{source}/: {e}")
        return None


class StepMatcher:
    """
    Resolves a step text against step definitions by tier.

    Tiers are exact text, cucumber expression and raw pattern. The first tier
    with any match decides: one match wins, several are ambiguous.
    """

    def __init__(self, definitions: Sequence[Any], registry: Optional[ParameterTypeRegistry] = None):
        self.definitions = list(definitions)
        self.registry = registry or ParameterTypeRegistry()
        self._expressions: Dict[str, CucumberExpression] = {}

    def expression_for(self, source: str) -> CucumberExpression:
        """Compiled expression for a source; raises on configuration errors"""
        expression = self._expressions.get(source)
        if expression is None:
            expression = CucumberExpression(source, self.registry)
            self._expressions[source] = expression
        return expression

    def match(self, text: str) -> MatchCandidate:
        by_tier: Dict[int, List[Any]] = {}
        for definition in self.definitions:
            by_tier.setdefault(definition.pattern.tier, []).append(definition)

        for tier in sorted(by_tier):
            candidates = []
            for definition in by_tier[tier]:
                candidate = self._match_definition(definition, text)
                if candidate is not None:
                    candidates.append(candidate)

            if len(candidates) == 1:
                logger.debug(f"Matched '{text}' to {candidates[0].definition.pattern.description}")
                return candidates[0]
            if candidates:
                raise AmbiguousStepError(text, [
                    f"{candidate.definition.pattern.description} ({candidate.definition.location})"
                    for candidate in candidates
                ])

        raise UndefinedStepError(text)

    def _match_definition(self, definition: Any, text: str) -> Optional[MatchCandidate]:
        pattern = definition.pattern

        if pattern.kind == PatternKind.EXACT:
            if text == pattern.source:
                return MatchCandidate(definition, [], [])
            return None

        if pattern.kind == PatternKind.EXPRESSION:
            result = self.expression_for(pattern.source).match(text)
            if result is None:
                return None
            return MatchCandidate(definition, result.arguments, result.values)

        compiled = _compile_raw(pattern.source)
        if compiled is None:
            return None
        result = compiled.fullmatch(text)
        if result is None:
            return None
        captures = [group for group in result.groups() if group is not None]
        return MatchCandidate(definition, captures, list(captures))
