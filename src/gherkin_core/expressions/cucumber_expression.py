"""
Cucumber expressions: ``I have {int} cucumber(s) in my belly/stomach``.

Supported syntax:
    {name}       parameter, resolved through a ParameterTypeRegistry
    (text)       optional text
    a/b          alternation of single words
    \\{ \\( \\/   escapes for the characters above
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..core.exceptions import ExpressionError, StepTypeMismatchError, UnknownParameterTypeError
from .parameter_types import ParameterTypeRegistry

TEXT = "text"
PARAMETER = "parameter"
OPTIONAL = "optional"
ALTERNATION = "alternation"

_ESCAPABLE = set("{}()/\\")


@dataclass(frozen=True)
class ExpressionToken:
    kind: str
    value: Any


@dataclass(frozen=True)
class CucumberMatch:
    """Arguments captured by a cucumber expression"""
    arguments: List[str]
    values: List[Any]
    parameter_type_names: List[str]


class ExpressionParser:
    """Tokenizes cucumber expressions and compiles them to regular expressions"""

    def __init__(self, registry: ParameterTypeRegistry):
        self.registry = registry

    def tokenize(self, expression: str) -> List[ExpressionToken]:
        tokens: List[ExpressionToken] = []
        buffer = ""
        alternation: Optional[List[str]] = None
        index = 0

        while index < len(expression):
            char = expression[index]

            if char == "\\" and index + 1 < len(expression) and expression[index + 1] in _ESCAPABLE:
                buffer += expression[index + 1]
                index += 2
                continue

            if char == "{":
                buffer, alternation = self._flush(buffer, alternation, tokens)
                close = self._find_closing(expression, index, "{", "}")
                if close is None:
                    raise ExpressionError(f"Unterminated parameter in expression: '{expression}'")
                tokens.append(ExpressionToken(PARAMETER, expression[index + 1:close]))
                index = close + 1
            elif char == "(":
                buffer, alternation = self._flush(buffer, alternation, tokens)
                close = self._find_closing(expression, index, "(", ")")
                if close is None:
                    raise ExpressionError(f"Unterminated optional group in expression: '{expression}'")
                optional_text = expression[index + 1:close]
                if "{" in optional_text:
                    raise ExpressionError(f"Parameters are not allowed in optional text: '{expression}'")
                tokens.append(ExpressionToken(OPTIONAL, optional_text))
                index = close + 1
            elif char == "/":
                alternation = (alternation or []) + [buffer]
                buffer = ""
                index += 1
            else:
                buffer += char
                index += 1

        self._flush(buffer, alternation, tokens)
        return tokens

    def compile(self, expression: str) -> Tuple[str, List[str]]:
        """Return the anchored regular expression and the parameter type names"""
        if not expression:
            raise ExpressionError("Cucumber expression must not be empty.")

        parts = []
        type_names = []

        for token in self.tokenize(expression):
            if token.kind == TEXT:
                parts.append(re.escape(token.value))
            elif token.kind == PARAMETER:
                parameter_type = self.registry.lookup(token.value)
                if parameter_type is None:
                    raise UnknownParameterTypeError(token.value)
                parts.append(f"(?P<_p{len(type_names)}>{parameter_type.regex})")
                type_names.append(token.value)
            elif token.kind == OPTIONAL:
                parts.append(f"(?:{re.escape(token.value)})?")
            elif token.kind == ALTERNATION:
                if any(not alternative for alternative in token.value):
                    raise ExpressionError(f"Empty alternative in alternation: '{expression}'")
                parts.append("(?:" + "|".join(re.escape(alt) for alt in token.value) + ")")

        return "^" + "".join(parts) + "$", type_names

    @staticmethod
    def _flush(buffer: str, alternation: Optional[List[str]], tokens: List[ExpressionToken]):
        # "I eat/drink a " becomes text("I ") + alternation(eat, drink) + text(" a ")
        if alternation is not None:
            parts = alternation + [buffer]
            first, last = parts[0], parts[-1]

            prefix, first_alternative = "", first
            if " " in first:
                split = first.rindex(" ") + 1
                prefix, first_alternative = first[:split], first[split:]

            suffix, last_alternative = "", last
            if " " in last:
                split = last.index(" ")
                last_alternative, suffix = last[:split], last[split:]

            if prefix:
                tokens.append(ExpressionToken(TEXT, prefix))
            tokens.append(ExpressionToken(ALTERNATION, [first_alternative] + parts[1:-1] + [last_alternative]))
            if suffix:
                tokens.append(ExpressionToken(TEXT, suffix))
        elif buffer:
            tokens.append(ExpressionToken(TEXT, buffer))
        return "", None

    @staticmethod
    def _find_closing(text: str, start: int, opening: str, closing: str) -> Optional[int]:
        depth = 0
        index = start
        while index < len(text):
            char = text[index]
            if char == "\\" and index + 1 < len(text):
                index += 2
                continue
            if char == opening:
                depth += 1
            elif char == closing:
                depth -= 1
                if depth == 0:
                    return index
            index += 1
        return None


class CucumberExpression:
    """A compiled cucumber expression bound to a parameter type registry"""

    def __init__(self, source: str, registry: Optional[ParameterTypeRegistry] = None):
        self.source = source
        self.registry = registry or ParameterTypeRegistry()
        self.pattern, self.parameter_type_names = ExpressionParser(self.registry).compile(source)
        self._regex = re.compile(self.pattern)

    def __repr__(self) -> str:
        return f"CucumberExpression({self.source!r})"

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_type_names)

    def match(self, text: str) -> Optional[CucumberMatch]:
        """Match the whole text; None when it does not match"""
        result = self._regex.fullmatch(text)
        if result is None:
            return None

        arguments = []
        values = []
        for index, name in enumerate(self.parameter_type_names):
            raw = result.group(f"_p{index}")
            if raw is None:
                continue
            parameter_type = self.registry.lookup(name)
            arguments.append(parameter_type.to_argument(raw))
            try:
                values.append(parameter_type.to_value(raw))
            except (TypeError, ValueError) as e:
                raise StepTypeMismatchError(text, name or "anonymous", raw) from e

        return CucumberMatch(
            arguments=arguments,
            values=values,
            parameter_type_names=list(self.parameter_type_names),
        )
