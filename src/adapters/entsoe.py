"""ENTSO-E transparency platform adapter.

Responses are XML market documents holding TimeSeries periods; each Point
position is offset from its period start by the period resolution. A
"no matching data" acknowledgement decodes to an empty result.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import aiohttp

from adapters.base import HttpSourceAdapter, optional_str, require_str, timeout_param
from core.config import SourceConfig
from core.constants import DEFAULT_FETCH_TIMEOUT_SECONDS
from core.errors import ConfigError, TransientError
from core.types import Sample, TimeWindow

_PERIOD_TIME_FORMAT = "%Y%m%d%H%M"
_RESOLUTION_PATTERN = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?$")
_VALUE_FIELDS = ("quantity", "price.amount")
_NO_DATA_REASON_CODE = "999"


@dataclass(frozen=True)
class EntsoeParams:
    """Validated ENTSO-E source parameters."""

    url: str
    security_token: str
    document_type: str
    in_domain: str | None
    out_domain: str | None
    process_type: str | None
    value_field: str | None
    timeout_seconds: float

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any], source_name: str) -> "EntsoeParams":
        """Validate raw config values.

        Raises:
            ConfigError: If required values are missing or invalid.
        """
        value_field = optional_str(params, "value_field", source_name)
        if value_field is not None and value_field not in _VALUE_FIELDS:
            raise ConfigError(
                f"Source '{source_name}' value_field must be one of {_VALUE_FIELDS}."
            )
        in_domain = optional_str(params, "in_domain", source_name)
        out_domain = optional_str(params, "out_domain", source_name)
        if in_domain is None and out_domain is None:
            raise ConfigError(
                f"Source '{source_name}' requires 'in_domain' or 'out_domain'."
            )
        return cls(
            url=require_str(params, "url", source_name),
            security_token=require_str(params, "security_token", source_name),
            document_type=require_str(params, "document_type", source_name),
            in_domain=in_domain,
            out_domain=out_domain,
            process_type=optional_str(params, "process_type", source_name),
            value_field=value_field,
            timeout_seconds=timeout_param(params, source_name, DEFAULT_FETCH_TIMEOUT_SECONDS),
        )


class EntsoeAdapter(HttpSourceAdapter):
    """Fetch one ENTSO-E document type for a time window."""

    def __init__(self, source: SourceConfig, session: aiohttp.ClientSession | None = None) -> None:
        self.params = EntsoeParams.from_mapping(source.params, source.name)
        super().__init__(source.name, self.params.timeout_seconds, session)

    async def fetch(self, window: TimeWindow) -> list[Sample]:
        """Fetch and decode the document covering ``window``."""
        status, body = await self._get(self.params.url, self.query_params(window))
        if status == 400 and is_no_data_acknowledgement(body):
            return []
        self._raise_for_status(status, self.params.url, body)
        return decode_entsoe_document(body, self.params.value_field, self.source_name)

    def query_params(self, window: TimeWindow) -> dict[str, str]:
        """Build query parameters for the window in UTC."""
        query = {
            "securityToken": self.params.security_token,
            "documentType": self.params.document_type,
            "periodStart": window.start.astimezone(timezone.utc).strftime(_PERIOD_TIME_FORMAT),
            "periodEnd": window.end.astimezone(timezone.utc).strftime(_PERIOD_TIME_FORMAT),
        }
        if self.params.in_domain:
            query["in_Domain"] = self.params.in_domain
        if self.params.out_domain:
            query["out_Domain"] = self.params.out_domain
        if self.params.process_type:
            query["processType"] = self.params.process_type
        return query


def decode_entsoe_document(
    body: bytes,
    value_field: str | None,
    source_name: str,
) -> list[Sample]:
    """Decode a market document into samples.

    Raises:
        ConfigError: If the document is a rejection acknowledgement.
        TransientError: If the XML is malformed or a period is unusable.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as error:
        raise TransientError(f"[{source_name}] malformed XML document: {error}") from error
    if _local_name(root.tag) == "Acknowledgement_MarketDocument":
        if _reason_code(root) == _NO_DATA_REASON_CODE:
            return []
        raise ConfigError(f"[{source_name}] request rejected: {_reason_text(root)}")
    samples: list[Sample] = []
    for period in root.findall(".//{*}Period"):
        samples.extend(_decode_period(period, value_field, source_name))
    return samples


def is_no_data_acknowledgement(body: bytes) -> bool:
    """Return whether ``body`` is the "no matching data" acknowledgement."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return False
    return (
        _local_name(root.tag) == "Acknowledgement_MarketDocument"
        and _reason_code(root) == _NO_DATA_REASON_CODE
    )


def _decode_period(period: ET.Element, value_field: str | None, source_name: str) -> list[Sample]:
    start_text = period.findtext("{*}timeInterval/{*}start")
    resolution_text = period.findtext("{*}resolution") or "PT60M"
    if start_text is None:
        raise TransientError(f"[{source_name}] period without timeInterval start")
    period_start = _parse_utc(start_text, source_name)
    step = parse_resolution(resolution_text, source_name)
    samples: list[Sample] = []
    for point in period.findall("{*}Point"):
        position_text = point.findtext("{*}position")
        raw_value = _point_value(point, value_field)
        if position_text is None or raw_value is None:
            continue
        interval_start = period_start + step * (int(position_text) - 1)
        samples.append(
            Sample(
                interval_start=interval_start,
                interval_end=interval_start + step,
                value=float(raw_value),
            )
        )
    return samples


def parse_resolution(resolution: str, source_name: str) -> timedelta:
    """Parse ISO-8601 durations such as ``PT15M`` or ``PT1H``.

    Raises:
        TransientError: For unsupported resolutions.
    """
    match = _RESOLUTION_PATTERN.match(resolution.strip())
    if match is None or not any(match.groups()):
        raise TransientError(f"[{source_name}] unsupported resolution '{resolution}'")
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    return timedelta(hours=hours, minutes=minutes)


def _point_value(point: ET.Element, value_field: str | None) -> str | None:
    fields = (value_field,) if value_field else _VALUE_FIELDS
    for field_name in fields:
        text = point.findtext("{*}" + field_name)
        if text is not None:
            return text
    return None


def _parse_utc(text: str, source_name: str) -> datetime:
    normalized = text.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as error:
        raise TransientError(f"[{source_name}] invalid period start '{text}'") from error
    if parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _reason_code(root: ET.Element) -> str | None:
    return root.findtext("{*}Reason/{*}code")


def _reason_text(root: ET.Element) -> str:
    return root.findtext("{*}Reason/{*}text") or "no reason given"
