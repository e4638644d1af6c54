"""Ordered registry mapping input identifiers to plan entries.

A readable local file becomes a :class:`PlanEntry` directly.  Anything
else goes to the first registered :class:`ICloudResolver` whose
``can_resolve`` accepts it, in registration order.  An input no resolver
accepts raises :class:`NoResolverError`.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

import structlog

from docingest.interfaces.cloud_resolver import ICloudResolver
from docingest.models.ingestion import IngestionSource
from docingest.models.plan import PlanEntry
from docingest.utils.errors import NoResolverError

logger = structlog.get_logger(logger_name=__name__)


class SourceResolverRegistry:
    """Deterministic, first-match resolver selection.

    Parameters
    ----------
    resolvers:
        Cloud resolvers in precedence order.
    """

    def __init__(self, resolvers: Iterable[ICloudResolver] = ()) -> None:
        self._resolvers: list[ICloudResolver] = list(resolvers)

    @property
    def resolvers(self) -> list[ICloudResolver]:
        return list(self._resolvers)

    def register(self, resolver: ICloudResolver) -> None:
        """Append *resolver* at the lowest precedence."""
        self._resolvers.append(resolver)

    def find_resolver(self, source: str) -> ICloudResolver | None:
        """Return the first resolver accepting *source*, or ``None``."""
        for resolver in self._resolvers:
            if resolver.can_resolve(source):
                return resolver
        return None

    async def resolve(self, source: str) -> PlanEntry:
        """Turn *source* into a plan entry.

        Raises
        ------
        NoResolverError
            If *source* is not a readable local file and no resolver
            accepts it.
        docingest.utils.errors.ResolverError
            If the selected resolver fails to download it.
        """
        if _is_readable_file(source):
            return PlanEntry(
                local_path=source,
                identity_path=source,
                provenance=IngestionSource.LOCAL,
            )

        resolver = self.find_resolver(source)
        if resolver is None:
            logger.warning("no_resolver_for_input", source=source)
            raise NoResolverError(message=f"No resolver for input: {source}")

        entry = await resolver.resolve(source)
        logger.info(
            "source_resolved",
            resolver=resolver.get_provider_name(),
            identity_path=entry.identity_path,
            provenance=entry.provenance.value,
        )
        return entry


def _is_readable_file(source: str) -> bool:
    return os.path.isfile(source) and os.access(source, os.R_OK)
