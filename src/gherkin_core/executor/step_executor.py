from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
import logging

from ..expressions.matcher import PatternKind, StepMatcher
from ..expressions.parameter_types import ParameterTypeRegistry
from ..models.pickle import Location, PickleStep, StepAttachment
from .step_definitions import StepDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepMatch:
    """A step resolved to exactly one definition"""
    definition: StepDefinition
    arguments: List[str]
    location: Location
    attachment: Optional[StepAttachment] = None
    values: List[Any] = field(default_factory=list)


class StepExecutor:
    """
    Matches pickle steps against step definitions and runs their handlers.

    Matching is delegated to ``StepMatcher`` on every call; handler errors
    reach the caller untouched.
    """

    def __init__(self, definitions: Iterable[StepDefinition],
                 registry: Optional[ParameterTypeRegistry] = None):
        self.definitions = list(definitions)
        self.registry = registry or ParameterTypeRegistry()
        self._matcher = StepMatcher(self.definitions, self.registry)

    def validate(self) -> None:
        """Compile every expression so configuration errors surface early"""
        for definition in self.definitions:
            if definition.pattern.kind == PatternKind.EXPRESSION:
                self._matcher.expression_for(definition.pattern.source)

    def match(self, step: PickleStep) -> StepMatch:
        candidate = self._matcher.match(step.text)
        return StepMatch(
            definition=candidate.definition,
            arguments=candidate.arguments,
            location=candidate.definition.location,
            attachment=step.argument,
            values=candidate.values,
        )

    async def execute(self, step: PickleStep, state: Any) -> StepMatch:
        step_match = self.match(step)
        logger.debug(f"Executing '{step.text}' with {step_match.definition.pattern_description}")
        await step_match.definition.invoke(state, step_match.arguments, step_match.attachment)
        return step_match
