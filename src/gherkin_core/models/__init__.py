from .pickle import (
    StepKeywordType,
    Location,
    DataTable,
    DocString,
    StepAttachment,
    PickleTag,
    PickleStep,
    Pickle,
)
from .results import (
    StepStatus,
    worst_status,
    StepResult,
    ScenarioResult,
    FeatureResult,
    RunResult,
)

__all__ = [
    "StepKeywordType",
    "Location",
    "DataTable",
    "DocString",
    "StepAttachment",
    "PickleTag",
    "PickleStep",
    "Pickle",
    "StepStatus",
    "worst_status",
    "StepResult",
    "ScenarioResult",
    "FeatureResult",
    "RunResult",
]
