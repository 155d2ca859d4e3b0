import inspect
from typing import Dict, Iterator, List, Callable, Pattern, Optional, Any, Sequence, Union
from dataclasses import dataclass
import logging

from ..expressions.matcher import StepPattern
from ..models.pickle import Location, StepAttachment, StepKeywordType

logger = logging.getLogger(__name__)

PatternLike = Union[str, Pattern, StepPattern]


def _location_of(function: Callable) -> Location:
    code = getattr(function, '__code__', None)
    if code is None:
        return Location(file=getattr(function, '__module__', '') or '')
    return Location(file=code.co_filename, line=code.co_firstlineno)


def _wants_attachment(function: Callable, argument_count: int) -> Optional[str]:
    """'keyword' or 'positional' if the handler takes the step attachment"""
    try:
        parameters = inspect.signature(function).parameters
    except (TypeError, ValueError):
        return None

    if 'attachment' in parameters:
        return 'keyword'
    # Parameters with defaults never receive the attachment
    positional = [
        p for p in parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    ]
    # state + captured arguments + attachment
    if len(positional) > argument_count + 1:
        return 'positional'
    return None


@dataclass(frozen=True)
class StepDefinition:
    """Represents a step definition with its pattern and function"""
    pattern: StepPattern
    function: Callable
    location: Location = Location()
    keyword_type: Optional[StepKeywordType] = None
    description: str = ""

    @property
    def pattern_description(self) -> str:
        return self.pattern.description

    async def invoke(self, state: Any, arguments: Sequence[str],
                     attachment: Optional[StepAttachment] = None) -> Any:
        """Call the handler with the captured arguments (sync or async)"""
        mode = _wants_attachment(self.function, len(arguments))
        if mode == 'keyword':
            result = self.function(state, *arguments, attachment=attachment)
        elif mode == 'positional':
            result = self.function(state, *arguments, attachment)
        else:
            result = self.function(state, *arguments)

        if inspect.isawaitable(result):
            return await result
        return result


class StepDefinitionRegistry:
    """Registry for step definitions"""

    def __init__(self):
        self.definitions: List[StepDefinition] = []

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self.definitions)

    def __len__(self) -> int:
        return len(self.definitions)

    def add_definition(self, keyword: Optional[str], pattern: PatternLike, function: Callable,
                       description: str = "", location: Optional[Location] = None) -> StepDefinition:
        """Add a step definition to registry"""
        definition = StepDefinition(
            pattern=StepPattern.infer(pattern),
            function=function,
            location=location or _location_of(function),
            keyword_type=StepKeywordType.from_keyword(keyword),
            description=description,
        )

        self.definitions.append(definition)
        logger.debug(f"Registered step: {keyword or '*'} {definition.pattern.description}")
        return definition

    def given(self, pattern: PatternLike, description: str = ""):
        """Decorator for Given steps"""

        def decorator(func):
            self.add_definition('given', pattern, func, description)
            return func

        return decorator

    def when(self, pattern: PatternLike, description: str = ""):
        """Decorator for When steps"""

        def decorator(func):
            self.add_definition('when', pattern, func, description)
            return func

        return decorator

    def then(self, pattern: PatternLike, description: str = ""):
        """Decorator for Then steps"""

        def decorator(func):
            self.add_definition('then', pattern, func, description)
            return func

        return decorator

    def step(self, pattern: PatternLike, description: str = ""):
        """Decorator for steps usable with any keyword"""

        def decorator(func):
            self.add_definition(None, pattern, func, description)
            return func

        return decorator

    def list_definitions(self) -> List[Dict[str, str]]:
        """List all registered step definitions"""
        return [
            {
                'keyword': defn.keyword_type.value if defn.keyword_type else '',
                'pattern': defn.pattern.description,
                'kind': defn.pattern.kind.name.lower(),
                'description': defn.description,
                'function': getattr(defn.function, '__name__', repr(defn.function)),
                'location': str(defn.location),
            }
            for defn in self.definitions
        ]

    def clear(self):
        """Clear all registered definitions"""
        self.definitions.clear()

    def register_from_module(self, module):
        """Register all functions marked with the module-level decorators"""
        for name, obj in inspect.getmembers(module):
            for step_info in getattr(obj, '_step_definitions', []):
                self.add_definition(
                    step_info['keyword'],
                    step_info['pattern'],
                    obj,
                    step_info.get('description', '')
                )


def _mark(keyword: Optional[str], pattern: PatternLike, description: str):
    def decorator(func):
        markers = list(getattr(func, '_step_definitions', []))
        markers.append({
            'keyword': keyword,
            'pattern': pattern,
            'description': description
        })
        func._step_definitions = markers
        return func

    return decorator


# Utility decorators for marking functions as step definitions
def given(pattern: PatternLike, description: str = ""):
    """Mark function as a Given step"""
    return _mark('given', pattern, description)


def when(pattern: PatternLike, description: str = ""):
    """Mark function as a When step"""
    return _mark('when', pattern, description)


def then(pattern: PatternLike, description: str = ""):
    """Mark function as a Then step"""
    return _mark('then', pattern, description)


def step(pattern: PatternLike, description: str = ""):
    """Mark function as a step usable with any keyword"""
    return _mark(None, pattern, description)
