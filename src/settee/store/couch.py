"""CouchDB database over HTTP, using requests."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from settee.core.errors import RevisionConflictError, TransportError
from settee.store.base import DESIGN_PREFIX, DocumentStore

if TYPE_CHECKING:
    from settee.config import Settings

logger = logging.getLogger(__name__)

# View parameters sent verbatim; everything else is JSON-encoded.
_PLAIN_PARAMS = frozenset({"stale", "update"})


def encode_view_params(params: dict[str, Any]) -> dict[str, str]:
    """Encode view parameters for a query string.

    Keys are always JSON so that ``"abc"`` and ``abc`` are not confused.
    """
    encoded = {}
    for name, value in params.items():
        if name in _PLAIN_PARAMS and isinstance(value, str):
            encoded[name] = value
        else:
            encoded[name] = json.dumps(value)
    return encoded


def _doc_path(doc_id: str) -> str:
    if doc_id.startswith(DESIGN_PREFIX):
        return DESIGN_PREFIX + quote(doc_id[len(DESIGN_PREFIX):], safe="")
    return quote(doc_id, safe="")


class CouchDatabase(DocumentStore):
    """A CouchDB database reached through the HTTP API."""

    def __init__(
        self,
        name: str,
        url: str | None = None,
        session: requests.Session | None = None,
        settings: "Settings | None" = None,
    ):
        if settings is None:
            from settee.config import get_settings

            settings = get_settings()
        self.name = name
        self.url = (url or settings.couch_url).rstrip("/")
        self.timeout = settings.request_timeout
        if session is None:
            session = requests.Session()
            session.auth = settings.couch_auth
            session.headers.update({"Accept": "application/json"})
        self.session = session

    @property
    def identity(self) -> str:
        return f"{self.url}/{self.name}"

    def _request(self, method: str, path: str = "", **kwargs: Any) -> requests.Response:
        url = f"{self.url}/{quote(self.name, safe='')}"
        if path:
            url = f"{url}/{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _check(response: requests.Response, doc_id: str | None = None, revision: str | None = None) -> dict[str, Any]:
        if response.status_code == 409 and doc_id is not None:
            raise RevisionConflictError(doc_id, revision)
        if response.status_code >= 400:
            raise TransportError(
                f"{response.request.method} {response.url} returned "
                f"{response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )
        return response.json()

    def create(self) -> None:
        """Create the database unless it already exists."""
        response = self._request("PUT")
        if response.status_code == 412:
            return
        self._check(response)
        logger.info("Created database %s", self.identity)

    def get_document(self, doc_id: str) -> dict[str, Any] | None:
        response = self._request("GET", _doc_path(doc_id))
        if response.status_code == 404:
            return None
        return self._check(response)

    def put_document(
        self,
        doc_id: str,
        body: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        payload = {k: v for k, v in body.items() if k != "_rev"}
        payload["_id"] = doc_id
        if revision is not None:
            payload["_rev"] = revision
        response = self._request("PUT", _doc_path(doc_id), json=payload)
        return self._check(response, doc_id, revision)["rev"]

    def query_view(
        self,
        design_id: str,
        view_name: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        path = f"{_doc_path(design_id)}/_view/{quote(view_name, safe='')}"
        params = dict(params)
        if "keys" in params:
            keys = params.pop("keys")
            response = self._request("POST", path, params=encode_view_params(params), json={"keys": keys})
        else:
            response = self._request("GET", path, params=encode_view_params(params))
        return self._check(response)

    def save_doc(self, doc: dict[str, Any]) -> dict[str, Any]:
        if "_id" in doc:
            rev = self.put_document(doc["_id"], doc, doc.get("_rev"))
            result = {"ok": True, "id": doc["_id"], "rev": rev}
        else:
            result = self._check(self._request("POST", json=doc))
        doc["_id"] = result["id"]
        doc["_rev"] = result["rev"]
        return result

    def delete_doc(self, doc: dict[str, Any]) -> None:
        response = self._request("DELETE", _doc_path(doc["_id"]), params={"rev": doc.get("_rev")})
        self._check(response, doc["_id"], doc.get("_rev"))
