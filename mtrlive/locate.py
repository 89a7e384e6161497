from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import geoip2.database
from geoip2.errors import AddressNotFoundError

from .config import Settings
from .util import default_data_dir

log = logging.getLogger(__name__)

CITY_DB_NAME = "GeoLite2-City.mmdb"
ASN_DB_NAME = "GeoLite2-ASN.mmdb"


class Locator(Protocol):
    def locate(self, address: str) -> str: ...

    def registration(self, address: str) -> str: ...


class NullLocator:
    """Used when no geolocation databases are available."""

    def locate(self, address: str) -> str:
        return ""

    def registration(self, address: str) -> str:
        return ""


def _place(country: Optional[str], city: Optional[str]) -> str:
    country = (country or "").strip()
    city = (city or "").strip()
    if not country:
        return city
    if not city or country == city:
        return country
    return f"{country} {city}"


class GeoIPLocator:
    """
    MaxMind GeoLite2 lookups. Either reader may be None; lookups against a
    missing database, or for unknown and private addresses, yield "".
    """

    def __init__(self, city_reader: Any = None, asn_reader: Any = None) -> None:
        self.city_reader = city_reader
        self.asn_reader = asn_reader

    @classmethod
    def from_paths(cls, city_db: Optional[Path], asn_db: Optional[Path]) -> "GeoIPLocator":
        city = geoip2.database.Reader(str(city_db)) if city_db else None
        asn = geoip2.database.Reader(str(asn_db)) if asn_db else None
        return cls(city, asn)

    def _city(self, address: str):
        if self.city_reader is None:
            return None
        try:
            return self.city_reader.city(address)
        except (AddressNotFoundError, ValueError):
            return None

    def _asn(self, address: str):
        if self.asn_reader is None:
            return None
        try:
            return self.asn_reader.asn(address)
        except (AddressNotFoundError, ValueError):
            return None

    def locate(self, address: str) -> str:
        place = ""
        city = self._city(address)
        if city is not None:
            place = _place(city.country.name, city.city.name)

        asn_str = ""
        asn = self._asn(address)
        if asn is not None:
            asn_str = f"{asn.autonomous_system_organization}(AS{asn.autonomous_system_number})"

        if not place:
            return asn_str
        return f"{place} {asn_str}".rstrip()

    def registration(self, address: str) -> str:
        city = self._city(address)
        if city is None:
            return ""
        return city.registered_country.name or ""

    def close(self) -> None:
        for r in (self.city_reader, self.asn_reader):
            if r is not None:
                r.close()


def _find_db(explicit: Optional[str], name: str) -> Optional[Path]:
    if explicit:
        p = Path(explicit).expanduser()
        return p if p.is_file() else None
    for base in (default_data_dir(), Path(__file__).resolve().parent):
        p = base / name
        if p.is_file():
            return p
    return None


def open_locator(settings: Settings) -> Locator:
    city_db = _find_db(settings.city_db, CITY_DB_NAME)
    asn_db = _find_db(settings.asn_db, ASN_DB_NAME)
    if city_db is None and asn_db is None:
        log.warning("no GeoLite2 databases found; location columns stay empty")
        return NullLocator()
    log.info("geolocation from city=%s asn=%s", city_db, asn_db)
    return GeoIPLocator.from_paths(city_db, asn_db)
