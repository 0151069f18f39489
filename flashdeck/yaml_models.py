"""
Defines the Pydantic models and dataclasses for YAML deck processing.
"""

import html
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, List, Optional

import bleach
from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

from .models import CardContent

# Regex for Kebab-case validation (e.g., "general", "world-history-2")
KEBAB_CASE_REGEX_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

KebabCaseStr = Annotated[
    str, StringConstraints(pattern=KEBAB_CASE_REGEX_PATTERN)
]


# Tag names treated as markup in card text. A "<" that does not open one of
# these is kept as a literal character (e.g. "x<y and y>z").
MARKUP_TAGS = (
    "a", "abbr", "b", "blockquote", "br", "code", "del", "div", "em",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "ins", "kbd",
    "li", "mark", "ol", "p", "pre", "s", "script", "small", "span",
    "strong", "style", "sub", "sup", "table", "td", "th", "tr", "u", "ul",
)

_LITERAL_LT_RE = re.compile(
    r"<(?!/?(?:%s)(?=[\s/>])[^<>]*>)" % "|".join(MARKUP_TAGS),
    re.IGNORECASE,
)


def sanitize_text(text: str) -> str:
    """
    Strip HTML markup from card text, keeping the plain text.

    Only tags named in MARKUP_TAGS are removed; any other angle bracket is
    escaped before cleaning so bleach leaves it alone. The entities bleach
    emits are then unescaped, since cards are rendered as plain text.
    """
    escaped = _LITERAL_LT_RE.sub("&lt;", text)
    cleaned = bleach.clean(escaped, tags=set(), attributes={}, strip=True)
    return html.unescape(cleaned).strip()


# --- Shape of a deck file as authored ---


class _RawYAMLCardEntry(PydanticBaseModel):
    q: str = Field(..., min_length=1)
    a: str = Field(..., min_length=1)
    favorite: bool = Field(default=False)

    model_config = ConfigDict(extra="forbid")

    @field_validator("q", "a", mode="before")
    @classmethod
    def coerce_scalar_to_text(cls, v):
        """
        YAML reads answers like `6` or `1947` as numbers; treat them as text.
        """
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class _RawYAMLDeckFile(PydanticBaseModel):
    id: KebabCaseStr
    name: str = Field(..., min_length=1)
    cards: List[_RawYAMLCardEntry] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


# --- Loader results ---


@dataclass
class DeckDefinition:
    """A deck category and its baseline cards, in authored order."""

    category_id: str
    name: str
    cards: List[CardContent]
    source_file: Optional[Path] = None


@dataclass
class DeckFileError(Exception):
    """A deck file that could not be read or validated.

    ``card_index`` and ``card_question_snippet`` locate the offending card
    when the problem is inside the ``cards`` list.
    """

    file_path: Path
    message: str
    card_index: Optional[int] = None
    card_question_snippet: Optional[str] = None

    def _question_preview(self, limit: int = 50) -> str:
        question = self.card_question_snippet or ""
        if len(question) <= limit:
            return question
        return question[: limit - 3] + "..."

    def __str__(self) -> str:
        where = [f"File: {self.file_path.name}"]
        if self.card_index is not None:
            where.append(f"Card Index: {self.card_index}")
        if self.card_question_snippet:
            where.append(f"Q: '{self._question_preview()}'")
        where.append(f"Error: {self.message}")
        return " | ".join(where)


@dataclass
class DeckLoaderConfig:
    """Configuration for loading a directory of deck files."""

    source_directory: Path
    fail_fast: bool = False
    patterns: List[str] = field(default_factory=lambda: ["*.yaml", "*.yml"])
