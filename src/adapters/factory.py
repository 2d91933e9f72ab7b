"""Adapter selection by configured kind."""

from __future__ import annotations

from typing import Callable

import aiohttp

from adapters.apg import ApgAdapter
from adapters.base import SourceAdapter
from adapters.entsoe import EntsoeAdapter
from core.config import SourceConfig, require_valid_source
from core.constants import ADAPTER_KIND_APG, ADAPTER_KIND_ENTSOE
from core.errors import ConfigError

AdapterFactory = Callable[[SourceConfig], SourceAdapter]

_ADAPTER_TYPES = {
    ADAPTER_KIND_APG: ApgAdapter,
    ADAPTER_KIND_ENTSOE: EntsoeAdapter,
}


def create_adapter(
    source: SourceConfig,
    session: aiohttp.ClientSession | None = None,
) -> SourceAdapter:
    """Construct and validate the adapter variant for ``source``.

    Raises:
        ConfigError: For entries that failed validation at load time,
            unknown kinds or invalid provider parameters.
    """
    require_valid_source(source)
    adapter_type = _ADAPTER_TYPES.get(source.kind)
    if adapter_type is None:
        raise ConfigError(
            f"Unknown adapter kind '{source.kind}' for source '{source.name}'. "
            f"Supported kinds: {sorted(_ADAPTER_TYPES)}."
        )
    return adapter_type(source, session)
