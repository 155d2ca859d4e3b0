"""
Gherkin Core - execution core for Gherkin scenarios
"""

__version__ = "0.1.0"
__author__ = "Gherkin Core Contributors"

from .core import ConfigManager, GherkinCoreError, ConfigurationError, PendingStepError
from .models import Pickle, PickleStep, PickleTag, DataTable, DocString, StepKeywordType, StepStatus
from .expressions import ParameterType, ParameterTypeRegistry, CucumberExpression
from .executor import (
    TestRunner,
    RunnerConfig,
    FeatureSource,
    StepDefinitionRegistry,
    HookRegistry,
    TagFilter,
    ReportCollector,
    given,
    when,
    then,
    step,
)

__all__ = [
    "ConfigManager",
    "GherkinCoreError",
    "ConfigurationError",
    "PendingStepError",
    "Pickle",
    "PickleStep",
    "PickleTag",
    "DataTable",
    "DocString",
    "StepKeywordType",
    "StepStatus",
    "ParameterType",
    "ParameterTypeRegistry",
    "CucumberExpression",
    "TestRunner",
    "RunnerConfig",
    "FeatureSource",
    "StepDefinitionRegistry",
    "HookRegistry",
    "TagFilter",
    "ReportCollector",
    "given",
    "when",
    "then",
    "step",
]
