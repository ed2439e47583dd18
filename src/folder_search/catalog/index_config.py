"""Named index configurations and their validity state.

A configuration lives in ``<root>/<catalog>/<name>/``: ``config.json`` holds
its properties and ``index/`` holds on-disk index data. Every option
property maps to a closed ``Enum``; resolution walks them in a fixed order
and fails at the first value that is missing or unknown.

The ``last.updated`` property encodes index validity: a build start
timestamp in epoch milliseconds, or one of the negative constants below.
"""

import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from folder_search.catalog.properties import PersistentProperties
from folder_search.config import IndexDefaults
from folder_search.core.exceptions import ConfigResolutionError, UnknownPropertyError
from folder_search.indexing.hasher import HashAlgorithm
from folder_search.search.analysis import Analyzer, ScoringModel
from folder_search.search.backends import StoreBackend
from folder_search.search.schemas import FieldLayout
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)

INDEX_UPDATE_FAILED = -1
INDEX_NEVER_CREATED = -2
INDEX_INVALIDATED = -3

HASH_ALGORITHM = "hash.algorithm"
TEXT_ANALYZER = "text.analyzer"
SCORING_MODEL = "scoring.model"
INDEX_FIELDS = "index.fields"
INDEX_BACKEND = "index.backend"
LAST_UPDATED = "last.updated"

CONFIG_FILENAME = "config.json"
INDEX_DIRNAME = "index"

# Resolution order
OPTIONS: dict[str, type[Enum]] = {
    HASH_ALGORITHM: HashAlgorithm,
    TEXT_ANALYZER: Analyzer,
    SCORING_MODEL: ScoringModel,
    INDEX_FIELDS: FieldLayout,
    INDEX_BACKEND: StoreBackend,
}


class Validity(str, Enum):
    """Interpretation of ``last.updated``."""

    UPDATED = "updated"
    UPDATE_FAILED = "update_failed"
    NEVER_CREATED = "never_created"
    INVALIDATED = "invalidated"

    @classmethod
    def of(cls, last_updated: int) -> "Validity":
        if last_updated >= 0:
            return cls.UPDATED
        return {
            INDEX_UPDATE_FAILED: cls.UPDATE_FAILED,
            INDEX_NEVER_CREATED: cls.NEVER_CREATED,
        }.get(last_updated, cls.INVALIDATED)


@dataclass(frozen=True)
class ResolvedConfig:
    """Strategies selected by a fully resolved configuration."""

    hash_algorithm: HashAlgorithm
    analyzer: Analyzer
    scoring: ScoringModel
    layout: FieldLayout
    backend: StoreBackend


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def list_configs(catalog_dir: Path) -> list[str]:
    """Names of the configurations stored in a catalog directory."""
    if not catalog_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in catalog_dir.iterdir()
        if entry.is_dir() and (entry / CONFIG_FILENAME).is_file()
    )


class IndexConfig:
    """Properties and validity state of one named configuration.

    Args:
        catalog_dir: Catalog directory under the indexed root.
        name: Configuration name, a single path component.
        defaults: Option values for a configuration created from scratch.
    """

    def __init__(self, catalog_dir: Path, name: str, defaults: IndexDefaults | None = None) -> None:
        defaults = defaults or IndexDefaults()
        self.name = name
        self.config_dir = catalog_dir / name
        self.index_dir = self.config_dir / INDEX_DIRNAME
        self.properties = PersistentProperties(
            self.config_dir / CONFIG_FILENAME,
            {
                HASH_ALGORITHM: defaults.hash_algorithm,
                TEXT_ANALYZER: defaults.text_analyzer,
                SCORING_MODEL: defaults.scoring_model,
                INDEX_FIELDS: defaults.field_layout,
                INDEX_BACKEND: defaults.backend,
                LAST_UPDATED: str(INDEX_NEVER_CREATED),
            },
        )

    @staticmethod
    def property_names() -> list[str]:
        return [*OPTIONS, LAST_UPDATED]

    @staticmethod
    def options(prop: str) -> list[str]:
        """Legal values of an option property, default first."""
        if prop not in OPTIONS:
            raise UnknownPropertyError(prop, list(OPTIONS))
        return [member.value for member in OPTIONS[prop]]

    def get(self, prop: str) -> str | None:
        return self.properties.get(prop)

    def set(self, prop: str, value: str) -> None:
        """Change an option property.

        Any real change invalidates an index that has been created.

        Raises:
            UnknownPropertyError: If ``prop`` is not an option property.
        """
        if prop not in OPTIONS:
            raise UnknownPropertyError(prop, list(OPTIONS))
        if self.properties.get(prop) == value:
            return
        self.properties.set(prop, value)
        logger.info("Configuration changed", config=self.name, property=prop, value=value)
        if self.last_updated != INDEX_NEVER_CREATED:
            self.set_last_updated(INDEX_INVALIDATED)

    @property
    def last_updated(self) -> int:
        raw = self.properties.get(LAST_UPDATED)
        try:
            return int(raw) if raw is not None else INDEX_NEVER_CREATED
        except ValueError:
            logger.warning("Corrupt validity value", config=self.name, value=raw)
            self.properties.set(LAST_UPDATED, str(INDEX_INVALIDATED))
            return INDEX_INVALIDATED

    def set_last_updated(self, value: int) -> None:
        self.properties.set(LAST_UPDATED, str(value))

    @property
    def validity(self) -> Validity:
        return Validity.of(self.last_updated)

    def status(self) -> str:
        """Human-readable validity."""
        value = self.last_updated
        if value >= 0:
            stamp = datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")
            return f"Last updated {stamp}"
        return {
            INDEX_UPDATE_FAILED: "Last update failed",
            INDEX_NEVER_CREATED: "Not yet created",
        }.get(value, "Index invalidated")

    def details(self) -> str:
        """One-line summary of the selected options."""
        return (
            f"[{self.name}]: {self.get(INDEX_BACKEND)} / "
            f"Analyzer: {self.get(TEXT_ANALYZER)} / "
            f"Scoring: {self.get(SCORING_MODEL)}"
        )

    def resolve(self) -> ResolvedConfig:
        """Map every option property to its enum member.

        Raises:
            ConfigResolutionError: For the first missing or unknown value.
        """
        resolved: dict[str, Enum] = {}
        for prop, option_type in OPTIONS.items():
            value = self.properties.get(prop)
            if value is None:
                raise ConfigResolutionError(prop, None)
            try:
                resolved[prop] = option_type(value)
            except ValueError as e:
                raise ConfigResolutionError(prop, value, cause=e) from e
        return ResolvedConfig(
            hash_algorithm=resolved[HASH_ALGORITHM],  # type: ignore[arg-type]
            analyzer=resolved[TEXT_ANALYZER],  # type: ignore[arg-type]
            scoring=resolved[SCORING_MODEL],  # type: ignore[arg-type]
            layout=resolved[INDEX_FIELDS],  # type: ignore[arg-type]
            backend=resolved[INDEX_BACKEND],  # type: ignore[arg-type]
        )

    def delete(self) -> bool:
        """Remove the whole configuration directory."""
        return delete_config(self.config_dir.parent, self.name)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "properties": self.properties.as_dict(),
            "options": {prop: self.options(prop) for prop in OPTIONS},
            "status": self.status(),
            "details": self.details(),
            "persistent": self.properties.persistent,
        }


def delete_config(catalog_dir: Path, name: str) -> bool:
    """Remove a named configuration and its index data.

    Returns:
        True if the configuration existed.
    """
    config_dir = catalog_dir / name
    if not (config_dir / CONFIG_FILENAME).is_file():
        return False
    shutil.rmtree(config_dir)
    logger.info("Configuration deleted", config=name)
    return True
