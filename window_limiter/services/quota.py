"""Quota metadata for response headers and telemetry."""

from __future__ import annotations

from typing import Sequence

from window_limiter.schemas.limits import DEFAULT_BUCKET, Limit
from window_limiter.schemas.outcome import QuotaEntry
from window_limiter.services.window import WindowSnapshot


def build_quota_table(limits: Sequence[Limit], snapshot: WindowSnapshot) -> tuple[QuotaEntry, ...]:
    """Derive one ``QuotaEntry`` per limit, in configured order.

    Limits are labelled "1", "2", ... when a bucket has more than one;
    a single limit carries no label.
    """

    numbered = len(limits) > 1
    table = []
    for position, limit in enumerate(limits, start=1):
        usage = snapshot.usage(limit)
        table.append(
            QuotaEntry(
                label=str(position) if numbered else None,
                limit=limit.requests,
                remaining=max(usage.remaining, 0),
                reset=usage.reset_seconds,
            )
        )
    return tuple(table)


def quota_headers(quotas: Sequence[QuotaEntry], bucket: str, prefix: str) -> dict[str, str]:
    """Render quota entries as ``<prefix>[-<bucket>][-<n>]-{Limit,Remaining,Reset}`` headers.

    Example:
        >>> quota_headers([QuotaEntry(None, 10, 9, 60)], "api", "Rate-Limit")
        {'Rate-Limit-api-Limit': '10', 'Rate-Limit-api-Remaining': '9', 'Rate-Limit-api-Reset': '60'}
    """

    base = prefix if bucket == DEFAULT_BUCKET else f"{prefix}-{bucket}"
    headers: dict[str, str] = {}
    for entry in quotas:
        name = f"{base}-{entry.label}" if entry.label else base
        headers[f"{name}-Limit"] = str(entry.limit)
        headers[f"{name}-Remaining"] = str(entry.remaining)
        headers[f"{name}-Reset"] = str(entry.reset)
    return headers
