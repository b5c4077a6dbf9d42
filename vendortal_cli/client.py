from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from vendortal_cli import __version__
from vendortal_cli.exceptions import ApiError, AuthenticationError, NotFoundError
from vendortal_cli.models.config import AppConfig

_REST_PREFIX = "rest/v1/"
_FUNCTIONS_PREFIX = "functions/v1/"
_STORAGE_PREFIX = "storage/v1/object/"


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "eq." + ("true" if value else "false")
    if value is None:
        return "is.null"
    return f"eq.{value}"


def _query_params(
    columns: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
    order: Optional[str] = None,
    ascending: bool = True,
    limit: Optional[int] = None,
) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if columns:
        params["select"] = columns
    for column, value in (filters or {}).items():
        params[column] = _filter_value(value)
    if order:
        params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
    if limit is not None:
        params["limit"] = str(limit)
    return params


class VendorTalClient:
    """Thin wrapper around the hosted backend's REST, function and storage endpoints."""

    _RETURN_REPRESENTATION = {"Prefer": "return=representation"}

    def __init__(self, config: AppConfig) -> None:
        self._base_url = config.api_url
        self._session = requests.Session()
        self._session.headers.update({
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.access_token}",
            "User-Agent": f"vendortal-cli/{__version__}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = _query_params(columns, filters, order, ascending, limit)
        rows = self._request("GET", _REST_PREFIX + table, params=params)
        return rows if isinstance(rows, list) else []

    def select_one(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        rows = self.select(table, columns=columns, filters=filters, limit=1)
        return _single_row(rows, table)

    def insert(
        self,
        table: str,
        row: Dict[str, Any],
        *,
        columns: str = "*",
    ) -> Dict[str, Any]:
        rows = self._request(
            "POST", _REST_PREFIX + table,
            params=_query_params(columns),
            json=row,
            headers=self._RETURN_REPRESENTATION,
        )
        return _single_row(rows, table)

    def update(
        self,
        table: str,
        changes: Dict[str, Any],
        *,
        filters: Dict[str, Any],
        columns: str = "*",
    ) -> Dict[str, Any]:
        rows = self._request(
            "PATCH", _REST_PREFIX + table,
            params=_query_params(columns, filters),
            json=changes,
            headers=self._RETURN_REPRESENTATION,
        )
        return _single_row(rows, table)

    def upsert(
        self,
        table: str,
        row: Dict[str, Any],
        *,
        on_conflict: str,
        columns: str = "*",
    ) -> Dict[str, Any]:
        params = _query_params(columns)
        params["on_conflict"] = on_conflict
        rows = self._request(
            "POST", _REST_PREFIX + table,
            params=params,
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return _single_row(rows, table)

    def delete(self, table: str, *, filters: Dict[str, Any]) -> None:
        self._request("DELETE", _REST_PREFIX + table, params=_query_params(filters=filters))

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Any:
        return self._request("POST", _FUNCTIONS_PREFIX + name, json=body)

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        object_path = f"{bucket}/{path.lstrip('/')}"
        self._request(
            "POST", _STORAGE_PREFIX + object_path,
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        return self.public_object_url(bucket, path)

    def public_object_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}{_STORAGE_PREFIX}public/{bucket}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        normalized_path = path.lstrip("/")
        url = self._base_url + normalized_path
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.ConnectionError as exc:
            raise ApiError(
                f"Cannot connect to {self._base_url}. "
                "Check your network connection and API URL."
            ) from exc
        except requests.RequestException as exc:
            raise ApiError(
                f"Cannot connect to {self._base_url}. "
                "Check your network connection and API URL."
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Your access token may have expired. "
                "Run vendortal-cli --init to set a new token."
            )
        if response.status_code == 404:
            raise NotFoundError(
                f"Resource not found: {normalized_path}. "
                "The VendorTal API may have changed."
            )
        if response.status_code == 409:
            raise ApiError(
                f"Conflicting record for {normalized_path}. "
                "The row may already exist."
            )
        if response.status_code >= 500:
            raise ApiError(
                f"VendorTal server error ({response.status_code}). "
                "Please try again later."
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ApiError(
                f"VendorTal API request failed ({response.status_code}) for {normalized_path}. "
                "Please verify the request and try again."
            ) from exc

        if response.status_code == 204:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid response from VendorTal API for {normalized_path}. Expected JSON data."
            ) from exc


def _single_row(rows: Any, table: str) -> Dict[str, Any]:
    if isinstance(rows, dict):
        return rows
    if isinstance(rows, list) and rows and isinstance(rows[0], dict):
        return rows[0]
    raise NotFoundError(f"No matching row in {table}.")
