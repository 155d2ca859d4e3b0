from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from .pickle import Location, PickleStep

if TYPE_CHECKING:
    from ..executor.suggestion import StepSuggestion


class StepStatus(Enum):
    """Outcome of a step, ordered by severity"""
    PASSED = "passed"
    SKIPPED = "skipped"
    PENDING = "pending"
    UNDEFINED = "undefined"
    AMBIGUOUS = "ambiguous"
    FAILED = "failed"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def is_failure(self) -> bool:
        """Anything but passed stops the rest of a scenario"""
        return self is not StepStatus.PASSED


_SEVERITY = {status: rank for rank, status in enumerate(StepStatus)}


def worst_status(statuses: Iterable[StepStatus]) -> StepStatus:
    """Most severe status of the given ones; passed when there are none"""
    worst = StepStatus.PASSED
    for status in statuses:
        if status.severity > worst.severity:
            worst = status
    return worst


@dataclass(frozen=True)
class StepResult:
    step: PickleStep
    status: StepStatus
    duration: float = 0.0
    location: Optional[Location] = None
    suggestion: Optional["StepSuggestion"] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'text': self.step.text,
            'status': self.status.value,
            'duration': self.duration,
        }
        if self.location is not None:
            data['location'] = str(self.location)
        if self.error_message:
            data['error'] = self.error_message
        if self.suggestion is not None:
            data['suggestion'] = self.suggestion.expression
        return data


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    step_results: Tuple[StepResult, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def status(self) -> StepStatus:
        return worst_status(result.status for result in self.step_results)

    @property
    def duration(self) -> float:
        return sum(result.duration for result in self.step_results)

    @property
    def error_message(self) -> Optional[str]:
        """Message of the first failed step, if any"""
        for result in self.step_results:
            if result.error_message:
                return result.error_message
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'tags': list(self.tags),
            'status': self.status.value,
            'duration': self.duration,
            'steps': [result.to_dict() for result in self.step_results],
        }


@dataclass(frozen=True)
class FeatureResult:
    name: str
    scenario_results: Tuple[ScenarioResult, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def status(self) -> StepStatus:
        return worst_status(result.status for result in self.scenario_results)

    @property
    def duration(self) -> float:
        return sum(result.duration for result in self.scenario_results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'feature': self.name,
            'tags': list(self.tags),
            'status': self.status.value,
            'duration': self.duration,
            'scenarios': [result.to_dict() for result in self.scenario_results],
        }


@dataclass(frozen=True)
class RunResult:
    """Root of the result tree"""
    feature_results: Tuple[FeatureResult, ...] = ()

    @property
    def status(self) -> StepStatus:
        return worst_status(result.status for result in self.feature_results)

    @property
    def duration(self) -> float:
        return sum(result.duration for result in self.feature_results)

    @property
    def scenario_results(self) -> List[ScenarioResult]:
        return [
            scenario
            for feature in self.feature_results
            for scenario in feature.scenario_results
        ]

    def _count(self, status: StepStatus) -> int:
        return sum(1 for scenario in self.scenario_results if scenario.status is status)

    @property
    def passed_count(self) -> int:
        return self._count(StepStatus.PASSED)

    @property
    def failed_count(self) -> int:
        return self._count(StepStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(StepStatus.SKIPPED)

    @property
    def pending_count(self) -> int:
        return self._count(StepStatus.PENDING)

    @property
    def undefined_count(self) -> int:
        return self._count(StepStatus.UNDEFINED)

    @property
    def ambiguous_count(self) -> int:
        return self._count(StepStatus.AMBIGUOUS)

    @property
    def total_count(self) -> int:
        return len(self.scenario_results)

    @property
    def all_suggestions(self) -> List["StepSuggestion"]:
        return [
            step.suggestion
            for scenario in self.scenario_results
            for step in scenario.step_results
            if step.suggestion is not None
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Plain structure for report renderers"""
        return {
            'status': self.status.value,
            'duration': self.duration,
            'features': [result.to_dict() for result in self.feature_results],
            'summary': {
                'total': self.total_count,
                'passed': self.passed_count,
                'failed': self.failed_count,
                'skipped': self.skipped_count,
                'pending': self.pending_count,
                'undefined': self.undefined_count,
                'ambiguous': self.ambiguous_count,
            },
        }
