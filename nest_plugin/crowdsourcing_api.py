"""HTTP client for the Global Nest Tracker crowdsourcing service."""
from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional
from urllib.parse import urljoin

import requests
from requests import exceptions as requests_exceptions

from .observation import ItemObservation, RemoteItemRecord, filter_to_transformed_state

DEFAULT_API_BASE_URL = "https://global-nest-tracker-6e3101149673.herokuapp.com/"
API_URL_ENV = "NEST_TRACKER_API_URL"
TOTAL_COUNT_HEADER = "X-Total-Count"
_DEFAULT_USER_AGENT = "GlobalNestTracker/crowdsourcing"

_LOGGER = logging.getLogger("NestTracker.API")


class NestApiError(RuntimeError):
    """Raised when the crowdsourcing service cannot be reached or understood."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ItemPage:
    """One listing response: the service-wide total and the records returned."""

    total: int
    records: List[RemoteItemRecord] = field(default_factory=list)


def resolve_base_url(configured: Optional[str] = None) -> str:
    """Pick the service URL: environment override, then preference, then default."""

    env_override = (os.getenv(API_URL_ENV) or "").strip()
    candidate = env_override or (configured or "").strip() or DEFAULT_API_BASE_URL
    if not candidate.endswith("/"):
        candidate += "/"
    return candidate


class NestCrowdsourcingClient:
    """Synchronous access to the service; callers run it off the host thread."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = resolve_base_url(base_url)
        self.timeout = timeout
        self._session = session or _create_http_session()

    def close(self) -> None:
        self._session.close()

    # Writes -------------------------------------------------------------

    def submit(self, observation: ItemObservation) -> None:
        response = self._request("POST", self.base_url, json=observation.to_payload())
        response.close()

    # Reads --------------------------------------------------------------

    def list_items(self) -> ItemPage:
        return self._get_page(self.base_url)

    def list_items_by_id(self, item_id: int) -> ItemPage:
        return self._get_page(self.base_url, params={"itemId": str(int(item_id))})

    def list_items_filtered(self, filter_label: Optional[str], page: int, size: int) -> ItemPage:
        params = {"page": str(int(page)), "size": str(int(size))}
        transformed_state = filter_to_transformed_state(filter_label)
        if transformed_state is not None:
            params["transformedState"] = transformed_state
        return self._get_page(self.base_url, params=params)

    def random_unknown_items(self, count: int) -> ItemPage:
        params = {"count": str(int(count)), "transformedState": "unknown"}
        return self._get_page(urljoin(self.base_url, "random"), params=params)

    # Internals ----------------------------------------------------------

    def _get_page(self, url: str, params: Optional[Mapping[str, str]] = None) -> ItemPage:
        response = self._request("GET", url, params=params)
        try:
            total = _parse_total(response.headers.get(TOTAL_COUNT_HEADER))
            try:
                payload = response.json()
            except ValueError as exc:
                raise NestApiError(f"Unable to parse service response from {response.url}: {exc}") from exc
        finally:
            response.close()
        return ItemPage(total=total, records=_parse_records(payload))

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests_exceptions.RequestException as exc:
            raise NestApiError(f"Request to {url} failed: {exc}") from exc
        if not response.ok:
            status = response.status_code
            response.close()
            raise NestApiError(f"Server returned error code {status} for URL: {url}", status_code=status)
        return response


def _parse_total(raw: Optional[str]) -> int:
    if raw is None:
        return 0
    try:
        return max(0, int(str(raw).strip()))
    except ValueError:
        _LOGGER.debug("Ignoring non-numeric %s header: %r", TOTAL_COUNT_HEADER, raw)
        return 0


def _parse_records(payload: Any) -> List[RemoteItemRecord]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise NestApiError(f"Expected a list of item records, got {type(payload).__name__}")
    records: List[RemoteItemRecord] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            _LOGGER.debug("Skipping malformed item record: %r", entry)
            continue
        try:
            records.append(RemoteItemRecord.from_payload(entry))
        except ValueError as exc:
            _LOGGER.debug("Skipping item record: %s", exc)
    return records


def _create_http_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = _build_user_agent()
    session.headers["Accept"] = "application/json"
    return session


def _build_user_agent() -> str:
    base = _resolve_host_user_agent()
    if base:
        return f"{base} {_DEFAULT_USER_AGENT}"
    return _DEFAULT_USER_AGENT


def _resolve_host_user_agent() -> Optional[str]:
    try:
        module = importlib.import_module("config")
    except Exception:
        return None
    agent = getattr(module, "user_agent", None)
    if agent is None:
        return None
    try:
        return str(agent() if callable(agent) else agent)
    except Exception:
        return None
