import json
import logging
from pathlib import Path

from config import settings

log = logging.getLogger(__name__)


class GeoTable:
    """Area code -> (latitude, longitude) lookup.

    The table itself is static data shipped alongside the deployment as a JSON
    object mapping codes to ``[lat, long]`` pairs.
    """

    def __init__(self, data: dict[int, tuple[float, float]] | None = None):
        self._data = data or {}

    @classmethod
    def load(cls, path: Path | str | None = None) -> "GeoTable":
        path = path or settings.geo_table_path
        if not path:
            return cls()

        path = Path(path)
        if not path.exists():
            log.warning(f"Geo table not found: {path}")
            return cls()

        raw = json.loads(path.read_text(encoding="utf-8"))
        data = {int(code): (float(lat), float(long)) for code, (lat, long) in raw.items()}
        log.info(f"Loaded {len(data)} area codes from {path}")
        return cls(data)

    def lat_long(self, code: int) -> tuple[float, float] | None:
        return self._data.get(code)

    def __len__(self) -> int:
        return len(self._data)
