from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Optional

from .base import ProviderError, SourceClient, SourceUnconfigured
from ..entities import FailureReason, Location


class FirmsClient(SourceClient):
    """Active fire detections from NASA FIRMS (area CSV endpoint).

    The feed has no point query, so a bounding box of ``bbox_degrees`` around
    the location is requested and the returned rows are counted.
    """

    name = "nasa-firms"
    base_url = "https://firms.modaps.eosdis.nasa.gov/api/area/csv"

    def __init__(
        self,
        map_key: Optional[str],
        base_url: Optional[str] = None,
        product: str = "VIIRS_NOAA20_NRT",
        bbox_degrees: float = 0.5,
        day_range: int = 1,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.map_key = map_key
        self.base_url = (base_url or self.base_url).rstrip("/")
        self.product = product
        self.bbox_degrees = bbox_degrees
        self.day_range = day_range
        self._log = logging.getLogger(self.__class__.__name__)

    def area_url(self, location: Location) -> str:
        west = max(-180.0, location.lng - self.bbox_degrees)
        east = min(180.0, location.lng + self.bbox_degrees)
        south = max(-90.0, location.lat - self.bbox_degrees)
        north = min(90.0, location.lat + self.bbox_degrees)
        area = f"{west:.4f},{south:.4f},{east:.4f},{north:.4f}"
        return f"{self.base_url}/{self.map_key}/{self.product}/{area}/{self.day_range}"

    def _fetch_fields(self, location: Location):
        if not self.map_key:
            raise SourceUnconfigured("FIRMS map key is not configured")
        response = self._request("GET", self.area_url(location))
        reader = csv.DictReader(io.StringIO(response.text))
        if not reader.fieldnames or "latitude" not in reader.fieldnames:
            # FIRMS answers 200 with a plain-text message for bad keys
            raise ProviderError(
                f"unexpected body: {response.text[:80]!r}", FailureReason.MALFORMED
            )
        count = 0
        observed_at: Optional[datetime] = None
        for row in reader:
            count += 1
            when = _acquired_at(row)
            if when is not None and (observed_at is None or when > observed_at):
                observed_at = when
        return {"fire.active_fires": count}, observed_at


def _acquired_at(row: dict) -> Optional[datetime]:
    date_value = (row.get("acq_date") or "").strip()
    time_value = (row.get("acq_time") or "0").strip().zfill(4)
    if not date_value:
        return None
    try:
        return datetime.strptime(f"{date_value} {time_value}", "%Y-%m-%d %H%M").replace(
            tzinfo=timezone.utc
        )
    except ValueError:
        return None


__all__ = ["FirmsClient"]
