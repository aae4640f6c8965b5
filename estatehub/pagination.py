from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from fastapi import Query

from .config import settings


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
) -> PageParams:
    """Out-of-range values are clamped, not rejected."""
    pg = max(int(1 if page is None else page), 1)
    lim = min(max(int(settings.page_size_default if limit is None else limit), 1), int(settings.page_size_max))
    return PageParams(page=pg, limit=lim)


def page_meta(total: int, params: PageParams) -> dict:
    return {
        "total": int(total),
        "page": params.page,
        "limit": params.limit,
        "total_pages": int(math.ceil(total / params.limit)) if params.limit else 0,
    }
