"""
Zoho Books API client
Authenticated calls against the Zoho Books v3 REST API, plus the page walker
that drains a list endpoint into memory.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from app.core.circuit_breakers import page_retrying
from app.services.sync.errors import ApiError
from app.services.sync.oauth import Credential, CredentialManager

logger = logging.getLogger(__name__)

ORG_HEADER = "X-com-zoho-books-organizationid"
MAX_PAGE_SIZE = 200


class ZohoBooksClient:
    """
    Issues GET calls to Zoho Books with the current access token and the
    organization header attached.

    A 401 triggers one forced token refresh and one retry of the same call.
    Every other failure is raised immediately as ApiError.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialManager,
        *,
        base_url: str,
        organization_id: Optional[str] = None,
        timeout: float = 20.0
    ):
        self._http = http_client
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._organization_id = organization_id
        self._timeout = timeout

    def _headers(self, credential: Credential) -> Dict[str, str]:
        headers = {"Authorization": f"Zoho-oauthtoken {credential.access_token}"}
        if self._organization_id:
            headers[ORG_HEADER] = self._organization_id
        return headers

    async def _send(self, path: str, params: Dict[str, Any], credential: Credential) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            return await self._http.get(
                url,
                params=params,
                headers=self._headers(credential),
                timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            logger.error(f"❌ Zoho GET {path} timed out after {self._timeout}s")
            raise ApiError(None, None, message=f"Zoho GET {path} timed out") from e
        except httpx.RequestError as e:
            logger.error(f"❌ Zoho GET {path} failed: {e}")
            raise ApiError(None, None, message=f"Zoho GET {path} failed: {e}") from e

    async def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET path and return the decoded JSON body.

        Raises:
            AuthError: token refresh failed
            ApiError: non-success response (after the single reauth retry)
        """
        params = dict(params or {})

        credential = await self._credentials.get_valid_credential()
        response = await self._send(path, params, credential)

        if response.status_code == 401:
            logger.warning(f"⚠️  Zoho GET {path} returned 401, refreshing token and retrying once")
            credential = await self._credentials.force_refresh(credential.access_token)
            response = await self._send(path, params, credential)

        if response.is_error:
            body = _response_body(response)
            logger.error(f"❌ Zoho GET {path} failed: {response.status_code} - {str(body)[:500]}")
            raise ApiError(response.status_code, body)

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            logger.error(f"❌ Invalid JSON from Zoho GET {path}: {response.text[:500]}")
            raise ApiError(response.status_code, response.text, message=f"Invalid JSON from Zoho GET {path}") from e

        if not isinstance(data, dict):
            logger.error(f"❌ Unexpected response shape from Zoho GET {path}: {str(data)[:500]}")
            raise ApiError(response.status_code, data, message=f"Unexpected response shape from Zoho GET {path}")

        return data


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except json.JSONDecodeError:
        return response.text


# ============================================================================
# PAGE WALKER
# ============================================================================

@dataclass
class PageWalkResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    page_context: Optional[Dict[str, Any]] = None
    pages: int = 0


async def fetch_all_pages(
    client: ZohoBooksClient,
    path: str,
    base_params: Optional[Dict[str, Any]],
    items_key: str,
    per_page: int = MAX_PAGE_SIZE,
    retry_attempts: int = 1
) -> PageWalkResult:
    """
    Fetch every page of a Zoho list endpoint.

    Follows page_context.has_more_page with no page cap and returns all items
    in encounter order. Any page failure aborts the walk.

    Args:
        client: Zoho Books client
        path: List endpoint (e.g. "/invoices")
        base_params: Filters sent with every page (e.g. date_start/date_end)
        items_key: Key of the item list in each response (e.g. "invoices")
        per_page: Page size
        retry_attempts: Attempts per page for transient errors (1 = none)

    Returns:
        PageWalkResult with all items and the last page_context
    """
    result = PageWalkResult()
    page = 1

    while True:
        params = {**(base_params or {}), "page": page, "per_page": per_page}

        async for attempt in page_retrying(retry_attempts):
            with attempt:
                data = await client.call(path, params)

        items = data.get(items_key) or []
        result.items.extend(items)
        result.page_context = data.get("page_context")
        result.pages = page

        logger.debug(f"Zoho {path} page {page}: {len(items)} {items_key}")

        if not (result.page_context or {}).get("has_more_page"):
            break
        page += 1

    logger.info(f"📄 Fetched {len(result.items)} {items_key} from Zoho {path} ({result.pages} pages)")
    return result
