"""
Registry search client.

Queries a registry's JSON name-search endpoint and maps each result row to a
CandidateRecord. Used for the provincial enterprise registry (primary) and
the federal corporations registry (secondary).

Field names differ between registries, so rows are mapped through
FIELD_ALIASES; rows without a name are skipped. Shareholder, administrator
and beneficiary lists are read through OWNERSHIP_ALIASES when present.
"""

import threading
import time
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.logging import logger
from config.settings import Settings, settings
from processing.entity_resolution.records import CandidateRecord
from processing.models import RecordSource
from scrapers.base import DataSource, DataSourceError
from scrapers.cache import CachedDataSource, RegistryCache
from scrapers.proxies import ProxyPool


class HttpRegistrySource(DataSource):
    """
    Name search against a registry HTTP endpoint.

    Usage:
        registry = HttpRegistrySource("https://registry.example", source=RecordSource.REGISTRY_PRIMARY)
        records = registry.search("9123-4567 QUÉBEC INC")
    """

    FIELD_ALIASES = {
        "name": ("name", "name_official", "nom", "nom_entreprise", "corporation_name"),
        "identifier": ("identifier", "NEQ", "neq", "corporation_number", "corporation_id"),
        "address": ("address", "adresse", "head_office_address", "adresse_siege"),
        "city": ("city", "ville", "municipalite", "municipality"),
        "status": ("status", "statut", "corporation_status"),
    }

    # Ownership lists: names as strings, or objects carrying a name
    OWNERSHIP_ALIASES = {
        "shareholders": ("shareholders", "actionnaires"),
        "administrators": ("administrators", "administrateurs", "directors"),
        "beneficiaries": ("beneficiaries", "ultimate_beneficiaries", "beneficiaires_ultimes"),
    }
    PERSON_NAME_KEYS = ("full_name", "name", "nom_complet", "nom")

    # Keys under which a JSON object response may hold its result list
    RESULT_KEYS = ("results", "data", "items", "corporations")

    def __init__(
        self,
        base_url: str,
        search_path: str = "/search",
        source: RecordSource = RecordSource.REGISTRY_PRIMARY,
        name: Optional[str] = None,
        query_param: str = "q",
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        min_request_interval: Optional[float] = None,
        proxy_pool: Optional[ProxyPool] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Registry root URL
            search_path: Path of the name-search endpoint
            source: Which registry this is
            name: Label used in logs
            query_param: Query-string parameter carrying the name
            timeout: Request timeout in seconds
            max_retries: Retries on 429/5xx responses
            min_request_interval: Minimum seconds between two requests
            proxy_pool: Optional proxies, rotated after each failed request
            session: Pre-built session (tests)
        """
        if not base_url:
            raise ValueError("base_url is required")

        self.base_url = base_url.rstrip("/")
        self.search_path = search_path if search_path.startswith("/") else f"/{search_path}"
        self.source = source
        self.name = name or source.value
        self.query_param = query_param
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.min_request_interval = (
            min_request_interval
            if min_request_interval is not None
            else settings.MIN_REQUEST_INTERVAL_SECONDS
        )
        self.proxy_pool = proxy_pool
        self.requests_made = 0

        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()

        if session is None:
            session = self._build_session(
                max_retries if max_retries is not None else settings.MAX_RETRIES
            )
        self.session = session

    @staticmethod
    def _build_session(max_retries: int) -> requests.Session:
        """Session with retry on throttling and server errors."""
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        session.headers.update({
            "Accept": "application/json",
            "Accept-Language": "fr-CA,fr;q=0.9,en;q=0.8",
            "User-Agent": "registry-match/0.1",
        })
        return session

    def _rate_limit(self):
        """Enforce the minimum interval between requests across threads."""
        with self._rate_lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self.min_request_interval:
                time.sleep(self.min_request_interval - elapsed)
            self._last_request_time = time.time()

    def search(self, query: str) -> list[CandidateRecord]:
        if not query or not query.strip():
            return []

        self._rate_limit()
        self.requests_made += 1

        url = f"{self.base_url}{self.search_path}"
        proxy = self.proxy_pool.current() if self.proxy_pool else None

        try:
            response = self.session.get(
                url,
                params={self.query_param: query},
                timeout=self.timeout,
                proxies=proxy.as_requests_proxies() if proxy else None,
            )
            response.raise_for_status()
            payload = response.json()

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"{self.name} search failed for '{query}': {e}")
            if self.proxy_pool:
                self.proxy_pool.rotate()
            raise DataSourceError(f"{self.name} search failed for '{query}': {e}") from e

        records = []
        for row in self._extract_rows(payload):
            record = self._parse_row(row)
            if record:
                records.append(record)

        logger.info(f"{self.name}: {len(records)} results for '{query}'")
        return records

    def _extract_rows(self, payload: Any) -> list[dict]:
        if isinstance(payload, list):
            return [row for row in payload if isinstance(row, dict)]

        if isinstance(payload, dict):
            for key in self.RESULT_KEYS:
                rows = payload.get(key)
                if isinstance(rows, list):
                    return [row for row in rows if isinstance(row, dict)]

        raise DataSourceError(f"{self.name} returned an unexpected payload: {type(payload).__name__}")

    def _parse_row(self, row: dict) -> Optional[CandidateRecord]:
        fields = {}
        for field_name, aliases in self.FIELD_ALIASES.items():
            value = None
            for alias in aliases:
                raw = row.get(alias)
                if raw is not None and str(raw).strip():
                    value = str(raw).strip()
                    break
            fields[field_name] = value

        if not fields["name"]:
            logger.debug(f"{self.name}: skipping row without a name: {row}")
            return None

        # Ownership may sit on the row itself or under a nested "people" object
        containers = [row] + [row[k] for k in ("people", "personnes") if isinstance(row.get(k), dict)]
        for field_name, aliases in self.OWNERSHIP_ALIASES.items():
            fields[field_name] = ()
            for container, alias in ((c, a) for c in containers for a in aliases):
                people = self._parse_people(container.get(alias))
                if people:
                    fields[field_name] = people
                    break

        return CandidateRecord(source=self.source, **fields)

    def _parse_people(self, value: Any) -> tuple[str, ...]:
        """
        Names from an ownership field.

        Accepts a list of names, a list of objects ({"full_name": ...},
        {"name": ...} or {"first_name": ..., "last_name": ...}) or a single
        string of names separated by semicolons.
        """
        if not value:
            return ()
        if isinstance(value, str):
            value = value.split(";")
        if not isinstance(value, list):
            logger.debug(f"{self.name}: ignoring ownership field of type {type(value).__name__}")
            return ()

        names = []
        for item in value:
            if isinstance(item, dict):
                name = next((item[k] for k in self.PERSON_NAME_KEYS if item.get(k)), None)
                if name is None:
                    first = item.get("first_name") or item.get("prenom") or ""
                    last = item.get("last_name") or item.get("nom_famille") or ""
                    name = f"{first} {last}"
            else:
                name = item

            if name is not None and str(name).strip():
                names.append(" ".join(str(name).split()))

        return tuple(names)

    def close(self):
        self.session.close()


def build_sources(
    config: Optional[Settings] = None,
    use_cache: bool = True,
) -> tuple[DataSource, Optional[DataSource]]:
    """
    Build the primary and (when configured) secondary registry sources.

    Returns:
        Tuple of (primary, secondary) where secondary may be None
    """
    config = config or settings
    if not config.REGISTRY_BASE_URL:
        raise ValueError("REGISTRY_BASE_URL is not configured")

    proxy_pool = ProxyPool.from_file(config.PROXY_POOL_FILE) if config.PROXY_POOL_FILE else None

    def make(base_url: str, search_path: str, source: RecordSource, name: str) -> DataSource:
        registry = HttpRegistrySource(
            base_url,
            search_path=search_path,
            source=source,
            name=name,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
            max_retries=config.MAX_RETRIES,
            min_request_interval=config.MIN_REQUEST_INTERVAL_SECONDS,
            proxy_pool=proxy_pool,
        )
        if not use_cache:
            return registry
        cache = RegistryCache(config.CACHE_DIR, max_age_days=config.CACHE_MAX_AGE_DAYS)
        return CachedDataSource(registry, cache)

    primary = make(
        config.REGISTRY_BASE_URL,
        config.REGISTRY_SEARCH_PATH,
        RecordSource.REGISTRY_PRIMARY,
        "primary-registry",
    )

    secondary = None
    if config.SECONDARY_REGISTRY_BASE_URL:
        secondary = make(
            config.SECONDARY_REGISTRY_BASE_URL,
            config.SECONDARY_REGISTRY_SEARCH_PATH,
            RecordSource.REGISTRY_SECONDARY,
            "secondary-registry",
        )

    return primary, secondary
