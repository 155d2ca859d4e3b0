"""
Executable scenario data handed to the runner.

Pickles are produced outside this package (by a Gherkin parser and pickle
compiler); this module only defines their shape. Everything here is frozen.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class StepKeywordType(Enum):
    """Semantic category of a step keyword"""
    CONTEXT = "context"
    ACTION = "action"
    OUTCOME = "outcome"
    CONJUNCTION = "conjunction"
    UNKNOWN = "unknown"

    @classmethod
    def from_keyword(cls, keyword: Optional[str]) -> Optional["StepKeywordType"]:
        """Map a Gherkin keyword or category name to a keyword type"""
        if keyword is None:
            return None
        normalized = keyword.strip().lower()
        aliases = {
            "given": cls.CONTEXT,
            "when": cls.ACTION,
            "then": cls.OUTCOME,
            "and": cls.CONJUNCTION,
            "but": cls.CONJUNCTION,
            "*": cls.UNKNOWN,
        }
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown step keyword: {keyword}")


@dataclass(frozen=True)
class Location:
    """Source location of a step definition or feature element"""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.file:
            return f"{self.file}:{self.line}"
        return f"line {self.line}"


@dataclass(frozen=True)
class DataTable:
    """Tabular step attachment"""
    rows: Tuple[Tuple[str, ...], ...] = ()

    @classmethod
    def from_rows(cls, rows: List[List[Any]]) -> "DataTable":
        return cls(rows=tuple(tuple(str(cell) for cell in row) for row in rows))

    @property
    def headers(self) -> List[str]:
        return list(self.rows[0]) if self.rows else []

    @property
    def data_rows(self) -> List[Tuple[str, ...]]:
        return list(self.rows[1:])

    def as_dicts(self) -> List[Dict[str, str]]:
        """Rows keyed by the header row"""
        headers = self.headers
        return [
            {headers[i]: cell for i, cell in enumerate(row) if i < len(headers)}
            for row in self.data_rows
        ]


@dataclass(frozen=True)
class DocString:
    """Free text step attachment"""
    content: str
    media_type: Optional[str] = None

    def __str__(self) -> str:
        return self.content


StepAttachment = Union[DataTable, DocString]


@dataclass(frozen=True)
class PickleTag:
    name: str


@dataclass(frozen=True)
class PickleStep:
    """One resolved step of a pickle"""
    text: str
    argument: Optional[StepAttachment] = None
    keyword_type: Optional[StepKeywordType] = None
    id: str = ""

    @classmethod
    def from_dict(cls, data: Union[str, Mapping[str, Any]], index: int = 0) -> "PickleStep":
        """
        Build a step from plain data.

        Accepts either the bare step text or a mapping with ``text`` and the
        optional ``keyword``, ``table`` (list of rows) and ``doc_string`` keys.
        """
        if isinstance(data, str):
            return cls(text=data, id=str(index))

        argument: Optional[StepAttachment] = None
        if data.get("table") is not None:
            argument = DataTable.from_rows(data["table"])
        elif data.get("doc_string") is not None:
            doc = data["doc_string"]
            if isinstance(doc, Mapping):
                argument = DocString(content=doc.get("content", ""), media_type=doc.get("media_type"))
            else:
                argument = DocString(content=str(doc))

        return cls(
            text=data["text"],
            argument=argument,
            keyword_type=StepKeywordType.from_keyword(data.get("keyword")),
            id=str(data.get("id", index)),
        )


@dataclass(frozen=True)
class Pickle:
    """A fully resolved, executable scenario"""
    name: str
    steps: Tuple[PickleStep, ...] = ()
    tags: Tuple[PickleTag, ...] = ()
    uri: str = ""
    id: str = ""
    language: str = "en"

    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int = 0) -> "Pickle":
        """Build a pickle from the plain structure used in YAML/JSON fixtures"""
        steps = tuple(
            PickleStep.from_dict(step, i) for i, step in enumerate(data.get("steps", []))
        )
        tags = tuple(PickleTag(name=str(tag)) for tag in data.get("tags", []))
        return cls(
            name=data.get("name", f"Scenario {index + 1}"),
            steps=steps,
            tags=tags,
            uri=data.get("uri", ""),
            id=str(data.get("id", index)),
            language=data.get("language", "en"),
        )
