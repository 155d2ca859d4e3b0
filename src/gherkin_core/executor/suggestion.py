"""
Suggestions for undefined steps.

The literal step text is turned into a cucumber expression by replacing
quoted strings, decimals and integers with ``{string}``, ``{float}`` and
``{int}``, and a pending step definition skeleton is rendered for it.
"""

import keyword
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging

from jinja2 import Environment

from ..models.pickle import StepKeywordType

logger = logging.getLogger(__name__)

FALLBACK_FUNCTION_NAME = "pendingStep"
KEYWORD_SUFFIX = "Step"

SNIPPET_TEMPLATE = """@{{ decorator }}("{{ expression }}")
async def {{ function_name }}({{ parameters | join(", ") }}):
{% if custom_types %}
    # Custom parameter types: {{ custom_types | join(", ") }}
{% endif %}
    raise PendingStepError()"""

_environment = Environment(trim_blocks=True, autoescape=False)
_snippet = _environment.from_string(SNIPPET_TEMPLATE)

_MARKERS = {
    StepKeywordType.CONTEXT: "Given",
    StepKeywordType.ACTION: "When",
    StepKeywordType.OUTCOME: "Then",
}


@dataclass(frozen=True)
class StepSuggestion:
    step_text: str
    expression: str
    function_name: str
    snippet: str
    keyword_type: Optional[StepKeywordType] = None

    @property
    def keyword(self) -> str:
        return keyword_marker(self.keyword_type)

    @classmethod
    def suggest(cls, step_text: str, keyword_type: Optional[StepKeywordType] = None,
                custom_parameter_types: Sequence[str] = ()) -> "StepSuggestion":
        return suggest(step_text, keyword_type, custom_parameter_types)


def keyword_marker(keyword_type: Optional[StepKeywordType]) -> str:
    """Given/When/Then for the keyword category; Given when there is none"""
    return _MARKERS.get(keyword_type, "Given")


def analyze_pattern(text: str) -> str:
    """Replace literal values in a step text with parameter placeholders"""
    result = []
    index = 0

    while index < len(text):
        char = text[index]

        if char in ('"', "'"):
            closing = text.find(char, index + 1)
            if closing != -1:
                result.append("{string}")
                index = closing + 1
                continue

        if _is_digit(char) or (char == "-" and index + 1 < len(text) and _is_digit(text[index + 1])):
            end = index + 1
            while end < len(text) and _is_digit(text[end]):
                end += 1
            if end + 1 < len(text) and text[end] == "." and _is_digit(text[end + 1]):
                end += 1
                while end < len(text) and _is_digit(text[end]):
                    end += 1
                result.append("{float}")
            else:
                result.append("{int}")
            index = end
            continue

        result.append(char)
        index += 1

    return "".join(result)


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _words(expression: str) -> List[str]:
    words = []
    current = ""
    for char in expression:
        if char.isalnum():
            current += char
        elif current:
            words.append(current)
            current = ""
    if current:
        words.append(current)
    return words


def generate_function_name(expression: str) -> str:
    """camelCase identifier from the words and placeholder names"""
    words = _words(expression)
    if not words:
        return FALLBACK_FUNCTION_NAME
    name = words[0].lower() + "".join(word[0].upper() + word[1:].lower() for word in words[1:])
    if keyword.iskeyword(name):
        return name + KEYWORD_SUFFIX
    return name


def _parameter_names(expression: str) -> List[str]:
    placeholders = []
    index = expression.find("{")
    while index != -1:
        closing = expression.find("}", index)
        if closing == -1:
            break
        placeholders.append(expression[index + 1:closing] or "arg")
        index = expression.find("{", closing)

    totals = Counter(placeholders)
    seen: Counter = Counter()
    names = []
    for placeholder in placeholders:
        seen[placeholder] += 1
        names.append(f"{placeholder}{seen[placeholder]}" if totals[placeholder] > 1 else placeholder)
    return names


def render_snippet(expression: str, function_name: str, keyword_type: Optional[StepKeywordType] = None,
                   custom_parameter_types: Sequence[str] = ()) -> str:
    escaped = expression.replace("\\", "\\\\").replace('"', '\\"')
    return _snippet.render(
        decorator=keyword_marker(keyword_type).lower(),
        expression=escaped,
        function_name=function_name,
        parameters=["state"] + _parameter_names(expression),
        custom_types=[f"{{{name}}}" for name in custom_parameter_types],
    )


def suggest(step_text: str, keyword_type: Optional[StepKeywordType] = None,
            custom_parameter_types: Sequence[str] = ()) -> StepSuggestion:
    """Build the suggestion for an undefined step"""
    expression = analyze_pattern(step_text)
    function_name = generate_function_name(expression)
    logger.debug(f"Suggesting '{expression}' for undefined step '{step_text}'")
    return StepSuggestion(
        step_text=step_text,
        expression=expression,
        function_name=function_name,
        snippet=render_snippet(expression, function_name, keyword_type, custom_parameter_types),
        keyword_type=keyword_type,
    )
