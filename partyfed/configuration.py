"""
Unified configuration for party federation services.

The `FederationConfig` dataclass composes the resolution engine settings
(matching thresholds, quality and conflict tables, batch sizing) with
observability settings, and builds the services from them.

Example usage::

    from partyfed.configuration import default_config
    from partyfed.store import InMemoryPartyRepository

    config = default_config()
    repository = InMemoryPartyRepository()
    resolver = config.create_resolution_service(repository)

The configuration loader can execute a user supplied `config.py` file::

    from partyfed.configuration import load_config_from_file

    config = load_config_from_file("/path/to/config.py")

The file must define a variable named ``FEDERATION_CONFIG`` that is an
instance of :class:`FederationConfig`.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping, MutableMapping

from partyfed.resolution.config import BatchConfig, ConflictConfig, MatchingConfig, QualityConfig

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from partyfed.observability.events import EventRecorder
    from partyfed.resolution.batch import BatchResolutionService
    from partyfed.resolution.matching import EntityMatcher
    from partyfed.resolution.references import EntityReferenceResolver
    from partyfed.resolution.resolver import EntityResolutionService
    from partyfed.store.base import PartyRepository


CONFIG_SYMBOL_NAME = "FEDERATION_CONFIG"


class ConfigurationError(RuntimeError):
    """Raised when loading a configuration file fails."""


@dataclass(slots=True)
class ObservabilitySettings:
    """Global observability and logging configuration.

    Attributes:
        event_log_url: SQLAlchemy URL of the resolution audit log; ``None`` disables it.
        log_level: Level applied to the ``partyfed`` logger.
        log_resolution_events: Bridge resolution events onto the ``partyfed.events`` logger.
    """

    event_log_url: str | None = None
    log_level: str = "INFO"
    log_resolution_events: bool = True


@dataclass(slots=True)
class FederationConfig:
    """
    Root configuration for the entity resolution engine.

    Attributes:
        matching: Thresholds and signal weights for candidate matching.
        quality: Source-authority table and quality weights.
        conflicts: Per-source, per-field quality and pinned fields.
        batch: Chunk size and worker count for batch runs.
        observability: Logging and event configuration.
        extras: User-defined metadata dictionary.
    """

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    conflicts: ConflictConfig = field(default_factory=ConflictConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    observability: ObservabilitySettings = field(default_factory=ObservabilitySettings)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def create_matcher(self) -> "EntityMatcher":
        from partyfed.resolution.matching import EntityMatcher

        return EntityMatcher(self.matching)

    def create_resolution_service(self, repository: "PartyRepository") -> "EntityResolutionService":
        """
        Create an EntityResolutionService wired with this config's tables.

        Args:
            repository: Party store the service reads pools from and writes to.

        Returns:
            EntityResolutionService using this config's matcher, conflict and
            quality settings.
        """
        from partyfed.resolution.conflicts import ConflictResolutionService
        from partyfed.resolution.quality import DataQualityService
        from partyfed.resolution.resolver import EntityResolutionService

        return EntityResolutionService(
            repository,
            matcher=self.create_matcher(),
            conflicts=ConflictResolutionService(self.conflicts),
            quality=DataQualityService(self.quality),
        )

    def create_batch_service(self, repository: "PartyRepository") -> "BatchResolutionService":
        """
        Create a BatchResolutionService over a fresh resolution service.

        The returned service owns a coordinator thread; call ``shutdown()``
        or use it as a context manager.
        """
        from partyfed.resolution.batch import BatchResolutionService

        return BatchResolutionService(
            repository,
            self.create_resolution_service(repository),
            self.batch,
        )

    def create_reference_resolver(self, repository: "PartyRepository") -> "EntityReferenceResolver":
        from partyfed.resolution.references import EntityReferenceResolver

        return EntityReferenceResolver(
            repository,
            fuzzy_threshold=self.matching.name_match_threshold,
        )

    def configure_observability(self, recorder: "EventRecorder | None" = None) -> Callable[[], None]:
        """Apply the observability settings; returns a callback that undoes them."""
        from partyfed.observability.logging import configure_observability

        return configure_observability(self.observability, recorder)


def default_config() -> FederationConfig:
    """Return a configuration with every default table and threshold."""
    return FederationConfig()


def render_default_config() -> str:
    """
    Render the canonical ``config.py`` contents for a deployment.

    Returns
    -------
    str
        The string content for a `config.py` file.
    """
    config = default_config()
    return textwrap.dedent(
        f"""\
        from partyfed.configuration import FederationConfig, ObservabilitySettings
        from partyfed.resolution.config import (
            BatchConfig,
            ConflictConfig,
            MatchingConfig,
            QualityConfig,
        )


        matching = MatchingConfig(
            manual_review_threshold={config.matching.manual_review_threshold!r},
            auto_merge_threshold={config.matching.auto_merge_threshold!r},
            name_match_threshold={config.matching.name_match_threshold!r},
        )

        # Pass source_authority={{...}} to replace the source trust table.
        quality = QualityConfig(
            freshness_half_life_days={config.quality.freshness_half_life_days!r},
        )

        # Pass field_quality={{...}} and pinned_fields={{...}} to replace the merge tables.
        conflicts = ConflictConfig()

        batch = BatchConfig(
            chunk_size={config.batch.chunk_size!r},
            max_workers={config.batch.max_workers!r},
        )

        observability = ObservabilitySettings(
            event_log_url=None,
            log_level="INFO",
            log_resolution_events=True,
        )

        FEDERATION_CONFIG = FederationConfig(
            matching=matching,
            quality=quality,
            conflicts=conflicts,
            batch=batch,
            observability=observability,
        )
        """
    )


def load_config_from_file(path: Path | str) -> FederationConfig:
    """
    Execute a user provided config module and return ``FederationConfig``.

    The target file must define a global named ``FEDERATION_CONFIG`` that is
    an instance of :class:`FederationConfig`.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    namespace: MutableMapping[str, Any] = {}
    code = path.read_text()
    compiled = compile(code, str(path), "exec")
    exec(compiled, namespace, namespace)  # noqa: S102 (exec used for config loading)

    if CONFIG_SYMBOL_NAME not in namespace:
        raise ConfigurationError(
            f"Configuration file {path} must define `{CONFIG_SYMBOL_NAME}`"
        )

    config_obj = namespace[CONFIG_SYMBOL_NAME]
    if not isinstance(config_obj, FederationConfig):
        raise ConfigurationError(
            f"{CONFIG_SYMBOL_NAME} in {path} must be a FederationConfig, "
            f"got {type(config_obj)!r}"
        )

    return config_obj


__all__ = [
    "CONFIG_SYMBOL_NAME",
    "ConfigurationError",
    "FederationConfig",
    "ObservabilitySettings",
    "default_config",
    "load_config_from_file",
    "render_default_config",
]
