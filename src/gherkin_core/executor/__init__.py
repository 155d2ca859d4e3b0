from .runner import TestRunner, RunnerConfig, RunState, FeatureSource
from .step_definitions import StepDefinition, StepDefinitionRegistry, given, when, then, step
from .step_executor import StepExecutor, StepMatch
from .hooks import Hook, HookRegistry, HookScope
from .tag_filter import TagFilter, TagExpression, TagOp
from .suggestion import StepSuggestion, suggest
from .report_collector import ResultSink, CompositeReporter, ReportCollector

__all__ = [
    'TestRunner',
    'RunnerConfig',
    'RunState',
    'FeatureSource',
    'StepDefinition',
    'StepDefinitionRegistry',
    'StepExecutor',
    'StepMatch',
    'Hook',
    'HookRegistry',
    'HookScope',
    'TagFilter',
    'TagExpression',
    'TagOp',
    'StepSuggestion',
    'suggest',
    'ResultSink',
    'CompositeReporter',
    'ReportCollector',
    'given',
    'when',
    'then',
    'step'
]

# Module metadata
__version__ = '0.1.0'
__description__ = 'Step executor module - match and run pickles against step definitions'
