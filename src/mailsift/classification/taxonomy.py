"""Classification taxonomy loaded from YAML."""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mailsift.core.errors import ConfigurationError

logger = structlog.get_logger(__name__)

NAME_PATTERN = re.compile(r"^[a-z0-9_]+$")


class Category(BaseModel):
    """A named node in the taxonomy tree."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str
    children: list[Category] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise ValueError(f"invalid category name {value!r}")
        return value

    @field_validator("children")
    @classmethod
    def _check_unique(cls, value: list[Category]) -> list[Category]:
        names = [child.name for child in value]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate categories: {', '.join(duplicates)}")
        return value


Category.model_rebuild()


class Taxonomy(BaseModel):
    """The full category tree."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    categories: list[Category]

    @field_validator("categories")
    @classmethod
    def _check_categories(cls, value: list[Category]) -> list[Category]:
        if not value:
            raise ValueError("taxonomy has no categories")
        names = [c.name for c in value]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate categories: {', '.join(duplicates)}")
        return value

    def coordinates(self) -> list[tuple[str, ...]]:
        """List every valid coordinate, parents before children."""
        result: list[tuple[str, ...]] = []

        def walk(categories: list[Category], prefix: tuple[str, ...]) -> None:
            for category in categories:
                path = (*prefix, category.name)
                result.append(path)
                walk(category.children, path)

        walk(self.categories, ())
        return result

    def is_valid_coordinate(self, coordinate: list[str] | tuple[str, ...]) -> bool:
        return tuple(coordinate) in set(self.coordinates())

    def render(self) -> str:
        """Render the tree as an indented list for prompts."""
        lines: list[str] = []

        def walk(categories: list[Category], depth: int) -> None:
            for category in categories:
                lines.append(f"{'  ' * depth}- {category.name}: {category.description}")
                walk(category.children, depth + 1)

        walk(self.categories, 0)
        return "\n".join(lines)


def load_taxonomy(path: Path | None = None) -> Taxonomy:
    """Load and validate a taxonomy file.

    Args:
        path: YAML file to load, defaults to the bundled taxonomy.

    Returns:
        Validated Taxonomy.

    Raises:
        ConfigurationError: If the file is unreadable or contains invalid entries.
    """
    source = str(path) if path else "mailsift.classification/taxonomy.yaml"
    try:
        if path is None:
            text = resources.files("mailsift.classification").joinpath("taxonomy.yaml").read_text(
                encoding="utf-8"
            )
        else:
            text = path.read_text(encoding="utf-8")
        raw = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read taxonomy {source}: {e}") from e

    try:
        taxonomy = Taxonomy.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid taxonomy {source}: {e}") from e

    logger.debug("taxonomy_loaded", source=source, coordinates=len(taxonomy.coordinates()))
    return taxonomy
