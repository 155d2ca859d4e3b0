import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import logging

from ..core.exceptions import DuplicateParameterTypeError, ParameterTypeError

logger = logging.getLogger(__name__)

BUILTIN_TYPE_NAMES = ("int", "float", "string", "word", "")


def _strip_quotes(captured: str) -> str:
    if len(captured) >= 2 and captured[0] == captured[-1] and captured[0] in ('"', "'"):
        return captured[1:-1]
    return captured


@dataclass(frozen=True)
class ParameterType:
    """
    A named placeholder usable as ``{name}`` in cucumber expressions.

    ``regexps`` holds one or more regular expression fragments; a captured
    value is cleaned by ``normalizer`` (e.g. quote stripping) to give the
    argument string and converted by ``transformer`` to give the typed value.
    """
    name: str
    regexps: List[str]
    transformer: Optional[Callable[[str], Any]] = None
    normalizer: Optional[Callable[[str], str]] = None
    use_for_snippets: bool = True

    @classmethod
    def create(cls, name: str, pattern: Union[str, Iterable[str]], **kwargs) -> "ParameterType":
        """Build a parameter type from a single pattern or a list of them"""
        regexps = [pattern] if isinstance(pattern, str) else list(pattern)
        return cls(name=name, regexps=regexps, **kwargs)

    @property
    def regex(self) -> str:
        """All fragments as one alternation"""
        return "|".join(self.regexps)

    def to_argument(self, captured: str) -> str:
        return self.normalizer(captured) if self.normalizer else captured

    def to_value(self, captured: str) -> Any:
        argument = self.to_argument(captured)
        return self.transformer(argument) if self.transformer else argument


def _builtin_types() -> List[ParameterType]:
    return [
        ParameterType("int", [r"-?\d+"], transformer=int),
        ParameterType("float", [r"-?\d*\.\d+"], transformer=float),
        ParameterType("string", [r'"[^"]*"', r"'[^']*'"], normalizer=_strip_quotes),
        ParameterType("word", [r"[^\s]+"]),
        ParameterType("", [r".+"], use_for_snippets=False),
    ]


@dataclass
class ParameterTypeRegistry:
    """Registry of parameter types, pre-populated with the built-in ones"""
    _types: Dict[str, ParameterType] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        for parameter_type in _builtin_types():
            self._types.setdefault(parameter_type.name, parameter_type)

    def lookup(self, name: str) -> Optional[ParameterType]:
        return self._types.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._types.keys())

    @property
    def custom_names(self) -> List[str]:
        """Names registered on top of the built-ins, in registration order"""
        return [name for name in self._types if name not in BUILTIN_TYPE_NAMES]

    def register(self, parameter_type: ParameterType) -> None:
        """Register a custom type; fails on duplicates and invalid fragments"""
        if parameter_type.name in self._types:
            raise DuplicateParameterTypeError(parameter_type.name)
        if not parameter_type.regexps:
            raise ParameterTypeError(f"Parameter type '{parameter_type.name}' has no pattern.")

        for fragment in parameter_type.regexps:
            try:
                re.compile(fragment)
            except re.error as e:
                raise ParameterTypeError(
                    f"Invalid pattern for parameter type '{parameter_type.name}': {fragment} ({e})"
                ) from e

        self._types[parameter_type.name] = parameter_type
        logger.debug(f"Registered parameter type {{{parameter_type.name}}}: {parameter_type.regex}")

    def register_all(self, parameter_types: Iterable[ParameterType]) -> "ParameterTypeRegistry":
        for parameter_type in parameter_types:
            self.register(parameter_type)
        return self

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "ParameterTypeRegistry":
        """
        Build a registry from the ``parameter_types`` config section.

        Each entry maps a type name to a pattern or a list of patterns.
        """
        registry = cls()
        for name, pattern in (config or {}).items():
            registry.register(ParameterType.create(name, pattern))
        return registry
