import inspect
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from ..models.results import FeatureResult, RunResult, ScenarioResult, StepResult

logger = logging.getLogger(__name__)


class ResultSink:
    """
    Observer of a run. Override any of the callbacks; they may be sync or
    async and their return values are ignored.
    """

    def feature_started(self, feature: FeatureResult) -> None:
        pass

    def scenario_started(self, scenario: ScenarioResult) -> None:
        pass

    def step_finished(self, step: StepResult) -> None:
        pass

    def scenario_finished(self, scenario: ScenarioResult) -> None:
        pass

    def feature_finished(self, feature: FeatureResult) -> None:
        pass

    def run_finished(self, result: RunResult) -> None:
        pass


async def notify(sinks: Sequence[Any], event: str, payload: Any) -> None:
    """Deliver one event to every sink; a failing sink never stops the run"""
    for sink in sinks:
        callback = getattr(sink, event, None)
        if callback is None:
            continue
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Result sink {type(sink).__name__} failed on {event}")


class CompositeReporter(ResultSink):
    """Fans every event out to several sinks"""

    def __init__(self, reporters: Optional[Sequence[Any]] = None):
        self.reporters = list(reporters or [])

    async def _fan_out(self, event: str, payload: Any) -> None:
        await notify(self.reporters, event, payload)

    async def feature_started(self, feature: FeatureResult) -> None:
        await self._fan_out('feature_started', feature)

    async def scenario_started(self, scenario: ScenarioResult) -> None:
        await self._fan_out('scenario_started', scenario)

    async def step_finished(self, step: StepResult) -> None:
        await self._fan_out('step_finished', step)

    async def scenario_finished(self, scenario: ScenarioResult) -> None:
        await self._fan_out('scenario_finished', scenario)

    async def feature_finished(self, feature: FeatureResult) -> None:
        await self._fan_out('feature_finished', feature)

    async def run_finished(self, result: RunResult) -> None:
        await self._fan_out('run_finished', result)


class ReportCollector(ResultSink):
    """Collects run events; safe to notify from concurrently running scenarios"""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[Tuple[str, Any]] = []
        self.run_result: Optional[RunResult] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    def _record(self, event: str, payload: Any) -> None:
        with self._lock:
            if self.started_at is None:
                self.started_at = datetime.now()
            self.events.append((event, payload))

    def feature_started(self, feature: FeatureResult) -> None:
        self._record('feature_started', feature)

    def scenario_started(self, scenario: ScenarioResult) -> None:
        self._record('scenario_started', scenario)

    def step_finished(self, step: StepResult) -> None:
        self._record('step_finished', step)

    def scenario_finished(self, scenario: ScenarioResult) -> None:
        self._record('scenario_finished', scenario)

    def feature_finished(self, feature: FeatureResult) -> None:
        self._record('feature_finished', feature)

    def run_finished(self, result: RunResult) -> None:
        self._record('run_finished', result)
        with self._lock:
            self.run_result = result
            self.finished_at = datetime.now()

    def event_names(self) -> List[str]:
        with self._lock:
            return [event for event, _ in self.events]

    def finished_scenarios(self) -> List[ScenarioResult]:
        with self._lock:
            return [payload for event, payload in self.events if event == 'scenario_finished']

    def summary(self) -> Dict[str, Any]:
        """Scenario counts per status plus timing, from the finished events"""
        scenarios = self.finished_scenarios()
        summary: Dict[str, Any] = {'total': len(scenarios)}
        for scenario in scenarios:
            key = scenario.status.value
            summary[key] = summary.get(key, 0) + 1
        if self.started_at and self.finished_at:
            summary['elapsed'] = (self.finished_at - self.started_at).total_seconds()
        return summary
