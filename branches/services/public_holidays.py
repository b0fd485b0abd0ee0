"""
public_holidays.py
------------------
Read-only lookup of national public holidays, plus an explicit per-caller cache.

- PublicHolidayProvider talks to the Nager.Date API
  (GET {base}/PublicHolidays/{year}/{country}).
- HolidayCache keeps one country's holidays by year. Whoever owns the cache
  owns its lifetime; switching country drops every cached year.
  One cache may serve many request threads, so every read and write of its
  state happens under the cache's own lock.

Public holidays are display data for the branch calendar. They never block
bookings: only branch calendar holiday/closure entries do that.
"""

import logging
import threading
from datetime import date

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class PublicHolidayError(Exception):
    """Raised when the public-holiday API cannot be reached or answers badly."""


class PublicHolidayProvider:
    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.PUBLIC_HOLIDAY_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PUBLIC_HOLIDAY_TIMEOUT_SECONDS

    def fetch(self, country_code: str, year: int) -> list[dict]:
        """
        Fetch the public holidays of one country for one year.

        Returns:
            [{"date": date, "name": str, "local_name": str, "country_code": str}, ...]
            sorted by date.

        Raises:
            PublicHolidayError: on transport errors or non-2xx responses.
        """
        url = f"{self.base_url}/PublicHolidays/{int(year)}/{country_code.upper()}"
        try:
            response = httpx.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Public holiday lookup failed for %s/%s: %s", country_code, year, e)
            raise PublicHolidayError(f"Could not load public holidays for {country_code} {year}") from e

        holidays = []
        for row in payload or []:
            try:
                holiday_date = date.fromisoformat(row["date"])
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed holiday row: %r", row)
                continue
            holidays.append({
                "date": holiday_date,
                "name": row.get("name") or row.get("localName") or "Holiday",
                "local_name": row.get("localName") or row.get("name") or "",
                "country_code": row.get("countryCode") or country_code.upper(),
            })
        holidays.sort(key=lambda h: h["date"])
        return holidays


class HolidayCache:
    """
    Year-keyed holiday cache for a single country.

    Usage:
        cache = HolidayCache(PublicHolidayProvider(), "PH")
        cache.holidays_for_year(2025)       # fetches once
        cache.holidays_for_year(2025)       # served from memory
        cache.set_country("SG")             # invalidates every year
    """

    def __init__(self, provider: PublicHolidayProvider, country_code: str):
        self.provider = provider
        self.country_code = country_code.upper()
        self._by_year: dict[int, list[dict]] = {}
        self._lock = threading.RLock()

    def set_country(self, country_code: str) -> None:
        country_code = country_code.upper()
        with self._lock:
            if country_code != self.country_code:
                self.country_code = country_code
                self._by_year.clear()

    def invalidate(self, year: int | None = None) -> None:
        with self._lock:
            if year is None:
                self._by_year.clear()
            else:
                self._by_year.pop(int(year), None)

    def is_loaded(self, year: int) -> bool:
        with self._lock:
            return int(year) in self._by_year

    def holidays_for_year(self, year: int) -> list[dict]:
        year = int(year)
        with self._lock:
            if year not in self._by_year:
                self._by_year[year] = self.provider.fetch(self.country_code, year)
            return self._by_year[year]

    def holidays_between(self, start: date, end: date) -> list[dict]:
        """Holidays with start <= date <= end, loading each touched year once."""
        found = []
        with self._lock:
            for year in range(start.year, end.year + 1):
                found.extend(h for h in self.holidays_for_year(year) if start <= h["date"] <= end)
        return found
