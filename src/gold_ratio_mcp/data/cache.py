"""Working cache for analysis results and their series resources."""

import gzip
import hashlib
import os
from datetime import datetime, timezone
from typing import Any

import diskcache
import pandas as pd

from gold_ratio_mcp.models import SERIES_NAMES, PricePoint, RatioResult


def series_uri(key: str, series: str) -> str:
    """Resource URI for one series of a cached analysis."""
    return f"ratio://{key}/{series}"


def series_to_csv(points: list[PricePoint]) -> str:
    """Convert to CSV string (time,value) for cache/resource."""
    frame = pd.DataFrame([(p.time, p.value) for p in points], columns=["time", "value"])
    return frame.to_csv(index=False)


class ResultCache:
    """
    Stores the latest result per analysis key plus its nine series as
    gzipped CSV. Resources only serve cached data; they never fetch.
    """

    def __init__(self, cache_dir: str | None = None):
        if cache_dir is None:
            cache_dir = os.environ.get("CACHE_DIR", ".cache/gold_ratio")
        self.cache: diskcache.Cache = diskcache.Cache(cache_dir)
        self._default_ttl = int(os.environ.get("CACHE_TTL", "900"))  # 15 minutes

    def store_result(self, key: str, result: RatioResult, ttl: int | None = None) -> dict[str, str]:
        """
        Store the result dict and every series CSV under `key`.

        Args:
            key: Analysis key (AnalysisRequest.to_key())
            result: Result to cache
            ttl: Cache TTL in seconds (default: CACHE_TTL)

        Returns:
            Mapping of series name -> resource URI
        """
        expire = ttl if ttl is not None else self._default_ttl
        self.cache.set(f"analysis://{key}", result.to_dict(), expire=expire)

        uris: dict[str, str] = {}
        for name in SERIES_NAMES:
            uri = series_uri(key, name)
            self._store_csv(uri, series_to_csv(getattr(result.data, name)), expire)
            uris[name] = uri
        return uris

    def _store_csv(self, uri: str, csv_text: str, expire: int) -> None:
        csv_bytes = csv_text.encode("utf-8")
        csv_gz = gzip.compress(csv_bytes)
        entry: dict[str, Any] = {
            "csv_gz": csv_gz,
            "encoding": "gzip",
            "size_bytes": len(csv_bytes),
            "compressed_bytes": len(csv_gz),
            # header line excluded
            "rows": max(csv_text.count("\n") - 1, 0),
            "hash": hashlib.sha256(csv_bytes).hexdigest()[:16],
            "stored_at": datetime.now(timezone.utc).isoformat(),
        }
        self.cache.set(uri, entry, expire=expire)

    def get_result(self, key: str) -> RatioResult | None:
        """Cached result for an analysis key, or None."""
        raw = self.cache.get(f"analysis://{key}")
        if raw is None:
            return None
        return RatioResult.from_dict(raw)

    def get_csv(self, uri: str) -> str | None:
        """Decompressed CSV text by URI, or None if not cached."""
        entry = self.cache.get(uri)
        if not entry:
            return None
        return gzip.decompress(entry["csv_gz"]).decode("utf-8")


# Global instance
result_cache = ResultCache()
