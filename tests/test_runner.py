"""PYTEST_DONT_REWRITE"""
import asyncio
import time
from unittest.mock import Mock

import pytest
from gherkin_core.core.exceptions import (
    ConfigurationError,
    PendingStepError,
    TagFilterError,
    UnknownParameterTypeError,
)
from gherkin_core.executor import (
    FeatureSource,
    HookRegistry,
    ReportCollector,
    RunnerConfig,
    RunState,
    StepDefinitionRegistry,
    TagFilter,
    TestRunner,
)
from gherkin_core.expressions.parameter_types import ParameterType
from gherkin_core.models import Pickle, StepStatus


def make_pickle(name, steps, tags=()):
    return Pickle.from_dict({'name': name, 'steps': list(steps), 'tags': list(tags)})


@pytest.fixture
def registry():
    registry = StepDefinitionRegistry()

    @registry.given('I have {int} cucumbers')
    def have(state, count):
        state['cucumbers'] = int(count)

    @registry.when('I eat {int}')
    async def eat(state, count):
        state['cucumbers'] -= int(count)

    @registry.then('I should have {int} left')
    def left(state, count):
        assert state['cucumbers'] == int(count), f"expected {count}, got {state['cucumbers']}"

    @registry.then('it explodes')
    def explodes(state):
        raise RuntimeError('kaboom')

    @registry.then('it is not written yet')
    def pending(state):
        raise PendingStepError()

    @registry.given('I own a {word}')
    def own_word(state, thing):
        state['thing'] = thing

    @registry.given('I own a {}')
    def own_anything(state, thing):
        state['thing'] = thing

    @registry.when('I record a step')
    def record(state):
        state.setdefault('log', []).append('recorded')

    return registry


@pytest.fixture
def hooks():
    return HookRegistry()


class TestRunnerConfig:
    """Test RunnerConfig"""

    def test_default_config(self):
        config = RunnerConfig()
        assert config.dry_run is False
        assert config.tag_filter is None
        assert config.parameter_types == []
        assert config.reporters == []
        assert config.parallel_workers == 1

    def test_from_dict(self):
        config = RunnerConfig.from_dict({
            'dry_run': True,
            'tags': '@smoke',
            'parallel_workers': 4,
            'parameter_types': {'color': 'red|blue'},
            'unknown_key': 'ignored',
        })
        assert config.dry_run is True
        assert config.tag_filter == '@smoke'
        assert config.parallel_workers == 4
        assert config.parameter_types[0].name == 'color'

    def test_from_empty_dict(self):
        assert RunnerConfig.from_dict(None) == RunnerConfig()


class TestRunnerSetup:
    """Test TestRunner construction"""

    def test_accepts_dict_config(self, registry):
        runner = TestRunner(registry, config={'tags': '@smoke and not @wip'})
        assert runner.tag_filter == TagFilter('@smoke and not @wip')
        assert runner.state is RunState.NOT_STARTED

    def test_invalid_tag_filter_raises(self, registry):
        with pytest.raises(TagFilterError):
            TestRunner(registry, config={'tags': '@smoke and'})

    def test_unknown_parameter_type_raises(self, registry):
        registry.add_definition('given', 'a {color} ball', lambda state, color: None)
        with pytest.raises(UnknownParameterTypeError):
            TestRunner(registry)

    def test_custom_parameter_type_from_config(self, registry):
        registry.add_definition('given', 'a {color} ball', lambda state, color: None)
        runner = TestRunner(registry, config=RunnerConfig(
            parameter_types=[ParameterType.create('color', 'red|blue')]
        ))
        assert runner.registry.custom_names == ['color']

    def test_invalid_parallel_workers(self, registry):
        with pytest.raises(ConfigurationError):
            TestRunner(registry, config={'parallel_workers': 0})

    def test_validate_and_info(self, registry):
        runner = TestRunner(registry)
        assert runner.validate() is True
        info = runner.get_info()
        assert info['name'] == 'Test Runner'
        assert len(info['capabilities']) > 0


class TestRunExecution:
    """Test step execution and status rollup"""

    @pytest.mark.asyncio
    async def test_passing_scenario(self, registry):
        runner = TestRunner(registry)
        pickle = make_pickle('eat', ['I have 5 cucumbers', 'I eat 2', 'I should have 3 left'])

        result = await runner.run([pickle], feature_name='Cucumbers', feature={})

        assert runner.state is RunState.DONE
        assert result.status is StepStatus.PASSED
        scenario = result.scenario_results[0]
        assert [r.status for r in scenario.step_results] == [StepStatus.PASSED] * 3
        assert all(r.location is not None for r in scenario.step_results)
        assert scenario.duration >= 0
        assert result.feature_results[0].name == 'Cucumbers'

    @pytest.mark.asyncio
    async def test_failure_skips_remaining_steps(self, registry, hooks):
        step_hook_calls = []
        hooks.before('step')(lambda: step_hook_calls.append('before'))

        runner = TestRunner(registry, hooks)
        pickle = make_pickle('fail', ['I have 5 cucumbers', 'I should have 9 left', 'I eat 1', 'I eat 2'])

        result = await runner.run([pickle], feature={})
        steps = result.scenario_results[0].step_results

        assert [r.status for r in steps] == [
            StepStatus.PASSED, StepStatus.FAILED, StepStatus.SKIPPED, StepStatus.SKIPPED,
        ]
        assert steps[1].error_message == 'AssertionError: expected 9, got 5'
        assert steps[2].location is None
        assert steps[2].duration == 0.0
        assert step_hook_calls == ['before', 'before']
        assert result.scenario_results[0].status is StepStatus.FAILED

    @pytest.mark.asyncio
    async def test_error_description(self, registry):
        result = await TestRunner(registry).run([make_pickle('boom', ['it explodes'])], feature={})
        assert result.scenario_results[0].step_results[0].error_message == 'RuntimeError: kaboom'

    @pytest.mark.asyncio
    async def test_undefined_step_gets_suggestion(self, registry):
        runner = TestRunner(registry)
        pickle = Pickle.from_dict({'name': 'u', 'steps': [
            {'text': 'I buy 3 "green" apples', 'keyword': 'when'},
            'I eat 1',
        ]})

        result = await runner.run([pickle], feature={})
        first, second = result.scenario_results[0].step_results

        assert first.status is StepStatus.UNDEFINED
        assert first.suggestion.expression == 'I buy {int} {string} apples'
        assert first.suggestion.snippet.startswith('@when(')
        assert second.status is StepStatus.SKIPPED
        assert result.undefined_count == 1
        assert result.all_suggestions == [first.suggestion]

    @pytest.mark.asyncio
    async def test_ambiguous_step_has_no_suggestion(self, registry):
        result = await TestRunner(registry).run([make_pickle('a', ['I own a car'])], feature={})
        step = result.scenario_results[0].step_results[0]

        assert step.status is StepStatus.AMBIGUOUS
        assert step.suggestion is None
        assert 'I own a {word}' in step.error_message
        assert 'I own a {}' in step.error_message

    @pytest.mark.asyncio
    async def test_pending_step(self, registry):
        pickle = make_pickle('p', ['it is not written yet', 'I eat 1'])
        result = await TestRunner(registry).run([pickle], feature={})
        steps = result.scenario_results[0].step_results

        assert steps[0].status is StepStatus.PENDING
        assert steps[1].status is StepStatus.SKIPPED
        assert result.pending_count == 1

    @pytest.mark.asyncio
    async def test_type_mismatch_fails_step(self, registry):
        def strict(value):
            raise ValueError(value)

        registry.add_definition('given', 'it is {level}', lambda state, level: None)
        runner = TestRunner(registry, config=RunnerConfig(
            parameter_types=[ParameterType.create('level', 'high|low', transformer=strict)]
        ))

        result = await runner.run([make_pickle('t', ['it is high'])], feature={})
        step = result.scenario_results[0].step_results[0]
        assert step.status is StepStatus.FAILED
        assert step.error_message.startswith('StepTypeMismatchError:')

    @pytest.mark.asyncio
    async def test_duration_covers_handler_only(self, registry, hooks):
        hooks.before('step')(lambda: time.sleep(0.05))
        runner = TestRunner(registry, hooks)

        result = await runner.run([make_pickle('d', ['I record a step'])], feature={})
        assert result.scenario_results[0].step_results[0].duration < 0.05

    def test_execute_sync_wrapper(self, registry):
        runner = TestRunner(registry)
        result = runner.execute({
            'pickles': [{'name': 'sync', 'steps': ['I have 2 cucumbers', 'I should have 2 left']}],
            'feature_name': 'Sync',
            'state': {},
        })
        assert result.status is StepStatus.PASSED
        assert result.total_count == 1


class TestDryRun:
    """Test dry-run mode"""

    @pytest.mark.asyncio
    async def test_handlers_not_called_and_no_short_circuit(self, registry):
        calls = []
        registry.add_definition('when', 'I call home', lambda state: calls.append('called'))
        runner = TestRunner(registry, config={'dry_run': True})
        pickle = make_pickle('dry', ['I call home', 'I do something unknown', 'I own a bike', 'it explodes'])

        result = await runner.run([pickle], feature={})
        statuses = [r.status for r in result.scenario_results[0].step_results]

        assert calls == []
        assert statuses == [
            StepStatus.PASSED, StepStatus.UNDEFINED, StepStatus.AMBIGUOUS, StepStatus.PASSED,
        ]
        assert result.scenario_results[0].step_results[1].suggestion is not None
        assert result.scenario_results[0].step_results[2].suggestion is None

    @pytest.mark.asyncio
    async def test_dry_run_is_idempotent(self, registry):
        runner = TestRunner(registry, config={'dry_run': True})
        pickles = [make_pickle('a', ['I eat 1', 'unknown step']), make_pickle('b', ['I own a car'])]

        first = await runner.run(pickles, feature={})
        second = await runner.run(pickles, feature={})

        def statuses(result):
            return [[r.status for r in s.step_results] for s in result.scenario_results]

        assert statuses(first) == statuses(second)

    @pytest.mark.asyncio
    async def test_step_hooks_still_run(self, registry, hooks):
        calls = []
        hooks.before('step')(lambda: calls.append('before'))
        hooks.after('step')(lambda: calls.append('after'))
        runner = TestRunner(registry, hooks, {'dry_run': True})

        await runner.run([make_pickle('h', ['I eat 1', 'unknown'])], feature={})
        assert calls == ['before', 'after', 'before', 'after']


class TestTagFiltering:
    """Test scenario selection by tags"""

    @pytest.mark.asyncio
    async def test_rejected_scenario_is_skipped(self, registry, hooks):
        calls = []
        hooks.before('scenario')(lambda: calls.append('before'))
        collector = ReportCollector()
        runner = TestRunner(registry, hooks, RunnerConfig(tag_filter='@smoke and not @wip', reporters=[collector]))

        pickles = [
            make_pickle('selected', ['I have 1 cucumbers'], tags=['@smoke']),
            make_pickle('wip', ['I have 1 cucumbers', 'it explodes'], tags=['@smoke', '@wip']),
        ]
        result = await runner.run(pickles, feature={})
        selected, wip = result.scenario_results

        assert selected.status is StepStatus.PASSED
        assert wip.status is StepStatus.SKIPPED
        assert [r.status for r in wip.step_results] == [StepStatus.SKIPPED, StepStatus.SKIPPED]
        assert wip.duration == 0
        assert calls == ['before']
        assert [s.name for s in collector.finished_scenarios()] == ['selected', 'wip']
        assert collector.event_names().count('step_finished') == 3

    @pytest.mark.asyncio
    async def test_feature_tags_are_inherited(self, registry, hooks):
        calls = []
        hooks.before('scenario', tags='@db')(lambda: calls.append('db'))
        runner = TestRunner(registry, hooks, {'tags': '@smoke and @db'})

        result = await runner.run(
            [make_pickle('s', ['I eat 0'], tags=['@smoke'])],
            feature_tags=['@db'],
            feature={'cucumbers': 1},
        )

        assert result.scenario_results[0].status is StepStatus.PASSED
        assert result.scenario_results[0].tags == ('@db', '@smoke')
        assert calls == ['db']


class TestStateIsolation:
    """Test per-scenario state"""

    @pytest.mark.asyncio
    async def test_feature_state_is_copied(self, registry):
        feature = {'cucumbers': 10, 'log': []}
        pickles = [
            make_pickle('first', ['I eat 4', 'I record a step', 'I should have 6 left']),
            make_pickle('second', ['I should have 10 left']),
        ]

        result = await TestRunner(registry).run(pickles, feature=feature)

        assert result.passed_count == 2
        assert feature == {'cucumbers': 10, 'log': []}

    @pytest.mark.asyncio
    async def test_state_factory(self, registry):
        factory = Mock(side_effect=lambda: {'cucumbers': 3})
        pickles = [make_pickle('a', ['I eat 3']), make_pickle('b', ['I should have 3 left'])]

        result = await TestRunner(registry).run(pickles, state_factory=factory)

        assert result.passed_count == 2
        assert factory.call_count == 2

    @pytest.mark.asyncio
    async def test_parallel_scenarios_keep_order(self, registry):
        @registry.when('I nap {int} ms')
        async def nap(state, ms):
            await asyncio.sleep(int(ms) / 1000)
            state['napped'] = int(ms)

        @registry.then('I napped {int} ms')
        def napped(state, ms):
            assert state['napped'] == int(ms)

        runner = TestRunner(registry, config={'parallel_workers': 3})
        pickles = [
            make_pickle(f'nap {ms}', [f'I nap {ms} ms', f'I napped {ms} ms'])
            for ms in (30, 10, 20)
        ]

        result = await runner.run(pickles, feature={})

        assert [s.name for s in result.scenario_results] == ['nap 30', 'nap 10', 'nap 20']
        assert result.passed_count == 3


class TestHookErrors:
    """Test how hook errors affect a run"""

    @pytest.mark.asyncio
    async def test_before_feature_error_propagates(self, registry, hooks):
        @hooks.before('feature')
        def broken():
            raise RuntimeError('no database')

        runner = TestRunner(registry, hooks)
        with pytest.raises(RuntimeError, match='no database'):
            await runner.run([make_pickle('x', ['I eat 1'])], feature={})
        assert runner.state is RunState.DONE

    @pytest.mark.asyncio
    async def test_before_scenario_error_is_logged(self, registry, hooks, caplog):
        @hooks.before('scenario')
        def flaky():
            raise RuntimeError('flaky')

        runner = TestRunner(registry, hooks)

        result = await runner.run([make_pickle('x', ['I have 1 cucumbers'])], feature={})

        assert result.passed_count == 1
        assert 'Before-scenario hook failed' in caplog.text

    @pytest.mark.asyncio
    async def test_after_hook_errors_do_not_stop_run(self, registry, hooks, caplog):
        calls = []

        @hooks.after('scenario')
        def broken_scenario():
            raise RuntimeError('cleanup failed')

        @hooks.after('feature')
        def broken_feature():
            calls.append('after feature')
            raise RuntimeError('teardown failed')

        @hooks.after('step')
        def broken_step():
            raise RuntimeError('step teardown failed')

        runner = TestRunner(registry, hooks)
        result = await runner.run([make_pickle('a', ['I have 1 cucumbers']), make_pickle('b', ['I eat 0'])],
                                  feature={'cucumbers': 0})

        assert result.total_count == 2
        assert result.passed_count == 2
        assert calls == ['after feature']
        assert 'After-scenario hook failed' in caplog.text
        assert 'After-feature hook failed' in caplog.text


class TestReporting:
    """Test result sink notifications"""

    @pytest.mark.asyncio
    async def test_event_order(self, registry):
        collector = ReportCollector()
        runner = TestRunner(registry, config=RunnerConfig(reporters=[collector]))

        result = await runner.run([make_pickle('a', ['I have 1 cucumbers', 'I eat 1'])], feature={})

        assert collector.event_names() == [
            'feature_started',
            'scenario_started',
            'step_finished',
            'step_finished',
            'scenario_finished',
            'feature_finished',
            'run_finished',
        ]
        assert collector.run_result is result
        assert collector.summary()['passed'] == 1

    @pytest.mark.asyncio
    async def test_broken_sink_is_ignored(self, registry):
        broken = Mock()
        broken.step_finished.side_effect = RuntimeError('sink down')
        collector = ReportCollector()
        runner = TestRunner(registry, config=RunnerConfig(reporters=[broken, collector]))

        result = await runner.run([make_pickle('a', ['I have 1 cucumbers'])], feature={})

        assert result.passed_count == 1
        assert collector.event_names().count('step_finished') == 1

    @pytest.mark.asyncio
    async def test_run_features(self, registry):
        runner = TestRunner(registry)
        result = await runner.run_features([
            FeatureSource(name='one', pickles=[make_pickle('a', ['I have 1 cucumbers'])], state={}),
            FeatureSource(name='two', pickles=[make_pickle('b', ['it explodes'])], tags=['@slow'], state={}),
        ])

        assert [f.name for f in result.feature_results] == ['one', 'two']
        assert result.feature_results[1].tags == ('@slow',)
        assert result.status is StepStatus.FAILED
        assert result.to_dict()['summary'] == {
            'total': 2, 'passed': 1, 'failed': 1, 'skipped': 0,
            'pending': 0, 'undefined': 0, 'ambiguous': 0,
        }
