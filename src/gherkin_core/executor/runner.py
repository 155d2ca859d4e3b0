import asyncio
import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import logging

from ..core.exceptions import (
    AmbiguousStepError,
    ConfigurationError,
    PendingStepError,
    StepTypeMismatchError,
    UndefinedStepError,
)
from ..expressions.parameter_types import ParameterType, ParameterTypeRegistry
from ..models.pickle import Pickle, PickleStep
from ..models.results import FeatureResult, RunResult, ScenarioResult, StepResult, StepStatus
from .hooks import HookRegistry, HookScope
from .report_collector import notify
from .step_definitions import StepDefinition
from .step_executor import StepExecutor
from .suggestion import suggest
from .tag_filter import TagFilter

logger = logging.getLogger(__name__)


@dataclass
class RunnerConfig:
    """Configuration for the test runner"""
    dry_run: bool = False
    tag_filter: Optional[Union[str, TagFilter]] = None
    parameter_types: List[ParameterType] = field(default_factory=list)
    reporters: List[Any] = field(default_factory=list)
    parallel_workers: int = 1

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunnerConfig":
        """
        Build a config from a plain mapping such as the ``runner`` section of
        the config file. ``tags`` is accepted as an alias of ``tag_filter`` and
        ``parameter_types`` may map names to patterns.
        """
        data = dict(data or {})
        parameter_types = data.get('parameter_types') or []
        if isinstance(parameter_types, dict):
            parameter_types = [
                ParameterType.create(name, pattern) for name, pattern in parameter_types.items()
            ]

        return cls(
            dry_run=bool(data.get('dry_run', False)),
            tag_filter=data.get('tag_filter', data.get('tags')),
            parameter_types=list(parameter_types),
            reporters=list(data.get('reporters') or []),
            parallel_workers=int(data.get('parallel_workers', 1)),
        )


@dataclass
class FeatureSource:
    """The pickles of one feature plus the state its scenarios start from"""
    name: str
    pickles: Sequence[Pickle]
    tags: Sequence[str] = ()
    state: Any = None
    state_factory: Optional[Callable[[], Any]] = None


class RunState(Enum):
    NOT_STARTED = "not_started"
    FEATURE_RUNNING = "feature_running"
    DONE = "done"


def describe_error(error: BaseException) -> str:
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__


class TestRunner:
    """
    Runs pickles against step definitions and builds the result tree.

    Every scenario works on its own copy of the feature state. In normal mode
    the first non-passing step skips the rest of its scenario; in dry-run mode
    steps are only matched and every step is evaluated.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, definitions: Iterable[StepDefinition], hooks: Optional[HookRegistry] = None,
                 config: Optional[Union[Dict, RunnerConfig]] = None):
        if isinstance(config, dict):
            self.config = RunnerConfig.from_dict(config)
        else:
            self.config = config or RunnerConfig()

        if not self.validate():
            raise ConfigurationError("Invalid runner configuration")

        # Configuration errors surface here, before any run starts
        self.registry = ParameterTypeRegistry().register_all(self.config.parameter_types)
        self.tag_filter = self._build_tag_filter(self.config.tag_filter)
        self.hooks = hooks or HookRegistry()
        self.executor = StepExecutor(definitions, self.registry)
        self.executor.validate()

        self._state = RunState.NOT_STARTED
        logger.info(f"Runner ready with {len(self.executor.definitions)} step definitions")

    @staticmethod
    def _build_tag_filter(tag_filter: Optional[Union[str, TagFilter]]) -> Optional[TagFilter]:
        if tag_filter is None or isinstance(tag_filter, TagFilter):
            return tag_filter
        return TagFilter(tag_filter)

    @property
    def state(self) -> RunState:
        return self._state

    @state.setter
    def state(self, value: RunState) -> None:
        logger.info(f"Run state changed from {self._state.value} to {value.value}")
        self._state = value

    @property
    def reporters(self) -> List[Any]:
        return self.config.reporters

    def validate(self) -> bool:
        """Validate runner configuration"""
        if self.config.parallel_workers < 1:
            logger.error(f"parallel_workers must be at least 1, got {self.config.parallel_workers}")
            return False
        return True

    @staticmethod
    def get_info() -> Dict[str, Any]:
        """Get module information"""
        return {
            'name': 'Test Runner',
            'version': '0.1.0',
            'description': 'Matches and executes pickles against step definitions',
            'capabilities': [
                'Exact, cucumber expression and regex step matching',
                'Tag expression filtering',
                'Ordered feature, scenario and step hooks',
                'Dry-run with step suggestions',
                'Concurrent scenarios with isolated state',
            ]
        }

    async def run(self, pickles: Sequence[Pickle], feature_name: str = "",
                  feature_tags: Sequence[str] = (), feature: Any = None,
                  state_factory: Optional[Callable[[], Any]] = None) -> RunResult:
        """Run the pickles of a single feature"""
        source = FeatureSource(
            name=feature_name,
            pickles=pickles,
            tags=feature_tags,
            state=feature,
            state_factory=state_factory,
        )
        return await self.run_features([source])

    async def run_features(self, features: Sequence[FeatureSource]) -> RunResult:
        """Run several features into one result tree"""
        self.state = RunState.FEATURE_RUNNING
        try:
            feature_results = []
            for source in features:
                feature_results.append(await self._run_feature(source))
        finally:
            self.state = RunState.DONE

        run_result = RunResult(feature_results=tuple(feature_results))
        logger.info(
            f"Run finished: {run_result.total_count} scenarios, "
            f"{run_result.passed_count} passed, {run_result.failed_count} failed"
        )
        await notify(self.reporters, 'run_finished', run_result)
        return run_result

    async def _run_feature(self, source: FeatureSource) -> FeatureResult:
        feature_tags = tuple(source.tags)
        logger.info(f"Executing feature: {source.name or '<unnamed>'} ({len(source.pickles)} scenarios)")
        await notify(self.reporters, 'feature_started', FeatureResult(name=source.name, tags=feature_tags))

        # An error here propagates: the feature cannot be set up
        await self.hooks.execute_before(HookScope.FEATURE, feature_tags)

        if self.config.parallel_workers > 1:
            scenario_results = await self._run_concurrently(source, feature_tags)
        else:
            scenario_results = [
                await self.run_scenario(pickle, source.state, source.state_factory, feature_tags)
                for pickle in source.pickles
            ]

        try:
            await self.hooks.execute_after(HookScope.FEATURE, feature_tags)
        except Exception:
            logger.exception(f"After-feature hook failed for {source.name or '<unnamed>'}")

        feature_result = FeatureResult(
            name=source.name,
            scenario_results=tuple(scenario_results),
            tags=feature_tags,
        )
        await notify(self.reporters, 'feature_finished', feature_result)
        return feature_result

    async def _run_concurrently(self, source: FeatureSource, feature_tags: Sequence[str]) -> List[ScenarioResult]:
        semaphore = asyncio.Semaphore(self.config.parallel_workers)

        async def bounded(pickle: Pickle) -> ScenarioResult:
            async with semaphore:
                return await self.run_scenario(pickle, source.state, source.state_factory, feature_tags)

        return list(await asyncio.gather(*(bounded(pickle) for pickle in source.pickles)))

    def resolve_tags(self, pickle: Pickle, feature_tags: Sequence[str] = ()) -> List[str]:
        """Feature tags followed by the pickle's own, without duplicates"""
        resolved = list(feature_tags)
        for name in pickle.tag_names:
            if name not in resolved:
                resolved.append(name)
        return resolved

    @staticmethod
    def isolated_state(feature: Any = None, state_factory: Optional[Callable[[], Any]] = None) -> Any:
        """A fresh state for one scenario"""
        if state_factory is not None:
            return state_factory()
        return copy.deepcopy(feature)

    async def run_scenario(self, pickle: Pickle, feature: Any = None,
                           state_factory: Optional[Callable[[], Any]] = None,
                           feature_tags: Sequence[str] = ()) -> ScenarioResult:
        """
        Run one pickle. Safe to schedule concurrently with other scenarios:
        nothing but the result sinks is shared.
        """
        tags = self.resolve_tags(pickle, feature_tags)

        if self.tag_filter is not None and not self.tag_filter.matches(tags):
            return await self._skip_scenario(pickle, tags)

        await notify(self.reporters, 'scenario_started', ScenarioResult(name=pickle.name, tags=tuple(tags)))

        try:
            await self.hooks.execute_before(HookScope.SCENARIO, tags)
        except Exception:
            logger.warning(f"Before-scenario hook failed for '{pickle.name}'", exc_info=True)

        state = self.isolated_state(feature, state_factory)
        step_results = []
        scenario_failed = False

        for step in pickle.steps:
            if self.config.dry_run:
                step_result = await self._dry_run_step(step, tags)
            elif scenario_failed:
                step_result = StepResult(step=step, status=StepStatus.SKIPPED)
            else:
                step_result = await self._execute_step(step, tags, state)
                scenario_failed = step_result.status.is_failure

            await notify(self.reporters, 'step_finished', step_result)
            step_results.append(step_result)

        try:
            await self.hooks.execute_after(HookScope.SCENARIO, tags)
        except Exception:
            logger.warning(f"After-scenario hook failed for '{pickle.name}'", exc_info=True)

        scenario_result = ScenarioResult(name=pickle.name, step_results=tuple(step_results), tags=tuple(tags))
        logger.info(f"Scenario '{pickle.name}': {scenario_result.status.value}")
        await notify(self.reporters, 'scenario_finished', scenario_result)
        return scenario_result

    async def _skip_scenario(self, pickle: Pickle, tags: Sequence[str]) -> ScenarioResult:
        logger.info(f"Scenario '{pickle.name}' skipped by tag filter {self.tag_filter.expression!r}")
        skipped = ScenarioResult(
            name=pickle.name,
            step_results=tuple(StepResult(step=step, status=StepStatus.SKIPPED) for step in pickle.steps),
            tags=tuple(tags),
        )
        await notify(self.reporters, 'scenario_started', ScenarioResult(name=pickle.name, tags=tuple(tags)))
        for step_result in skipped.step_results:
            await notify(self.reporters, 'step_finished', step_result)
        await notify(self.reporters, 'scenario_finished', skipped)
        return skipped

    async def _run_step_hooks(self, before: bool, tags: Sequence[str]) -> None:
        try:
            if before:
                await self.hooks.execute_before(HookScope.STEP, tags)
            else:
                await self.hooks.execute_after(HookScope.STEP, tags)
        except Exception:
            logger.warning(f"{'Before' if before else 'After'}-step hook failed", exc_info=True)

    def _suggest(self, step: PickleStep):
        return suggest(step.text, step.keyword_type, self.registry.custom_names)

    async def _execute_step(self, step: PickleStep, tags: Sequence[str], state: Any) -> StepResult:
        await self._run_step_hooks(True, tags)

        location = None
        suggestion = None
        error_message = None
        duration = 0.0

        try:
            step_match = self.executor.match(step)
            location = step_match.location
            started = time.perf_counter()
            try:
                await step_match.definition.invoke(state, step_match.arguments, step_match.attachment)
            finally:
                duration = time.perf_counter() - started
            status = StepStatus.PASSED
        except PendingStepError as e:
            status = StepStatus.PENDING
            error_message = e.message
        except UndefinedStepError as e:
            status = StepStatus.UNDEFINED
            error_message = str(e)
            suggestion = self._suggest(step)
        except AmbiguousStepError as e:
            status = StepStatus.AMBIGUOUS
            error_message = str(e)
        except StepTypeMismatchError as e:
            status = StepStatus.FAILED
            error_message = describe_error(e)
        except Exception as e:
            status = StepStatus.FAILED
            error_message = describe_error(e)
            logger.error(f"Step failed: {step.text} - {error_message}")

        await self._run_step_hooks(False, tags)

        return StepResult(
            step=step,
            status=status,
            duration=duration,
            location=location,
            suggestion=suggestion,
            error_message=error_message,
        )

    async def _dry_run_step(self, step: PickleStep, tags: Sequence[str]) -> StepResult:
        await self._run_step_hooks(True, tags)

        try:
            step_match = self.executor.match(step)
            result = StepResult(step=step, status=StepStatus.PASSED, location=step_match.location)
        except UndefinedStepError as e:
            result = StepResult(step=step, status=StepStatus.UNDEFINED,
                                suggestion=self._suggest(step), error_message=str(e))
        except AmbiguousStepError as e:
            result = StepResult(step=step, status=StepStatus.AMBIGUOUS, error_message=str(e))
        except StepTypeMismatchError as e:
            result = StepResult(step=step, status=StepStatus.FAILED, error_message=describe_error(e))

        await self._run_step_hooks(False, tags)
        return result

    def execute(self, input_data: Dict[str, Any]) -> RunResult:
        """
        Run synchronously

        Args:
            input_data: Dict with 'pickles' (Pickle objects or plain dicts) and
                optional 'feature_name', 'feature_tags', 'state' and 'state_factory'

        Returns:
            The run result tree
        """
        pickles = [
            pickle if isinstance(pickle, Pickle) else Pickle.from_dict(pickle, index)
            for index, pickle in enumerate(input_data.get('pickles', []))
        ]
        return asyncio.run(self.run(
            pickles,
            feature_name=input_data.get('feature_name', ''),
            feature_tags=input_data.get('feature_tags', ()),
            feature=input_data.get('state'),
            state_factory=input_data.get('state_factory'),
        ))
