"""
Thin Canvus REST session covering only the endpoints asset recovery needs.

Transport retries (connection errors, 5xx) live here so the discovery layer
never retries on its own.
"""
import logging
from typing import Any, Dict, List, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .. import config
from ..exceptions import AuthenticationError, CanvusAPIError
from ..models import Canvas, CanvasBackground, MediaDetails, Widget, WidgetType

# Per-type detail endpoints
_DETAIL_PATHS = {
    WidgetType.IMAGE: 'images',
    WidgetType.PDF: 'pdfs',
    WidgetType.VIDEO: 'videos',
}


class CanvusSession:
    def __init__(self,
                 base_url: str,
                 timeout: int = config.DEFAULT_API_TIMEOUT,
                 insecure_tls: bool = False,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.token: Optional[str] = None

        self.http = http or requests.Session()
        self.http.verify = not insecure_tls
        if http is None:
            retry = Retry(
                total=config.API_MAX_RETRIES,
                backoff_factor=config.API_BACKOFF_FACTOR,
                status_forcelist=(500, 502, 503, 504),
                allowed_methods=frozenset({'GET', 'POST'}),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry, pool_maxsize=config.MAX_CONCURRENT_CANVASES)
            self.http.mount('https://', adapter)
            self.http.mount('http://', adapter)

        if insecure_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    # --- Transport ---

    def _request(self,
                 method: str,
                 endpoint: str,
                 json_body: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None,
                 raw: bool = False) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        req_headers = dict(headers or {})
        if self.token:
            req_headers['Private-Token'] = self.token

        try:
            resp = self.http.request(method, url, json=json_body, headers=req_headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise CanvusAPIError(f"{method} {endpoint} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise CanvusAPIError(f"{method} {endpoint}: {resp.text.strip()}", status_code=resp.status_code)

        if raw:
            return resp.content
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise CanvusAPIError(f"{method} {endpoint}: invalid JSON response") from e

    # --- Authentication ---

    def login(self, email: str, password: str):
        try:
            data = self._request('POST', 'users/login', json_body={'email': email, 'password': password})
        except CanvusAPIError as e:
            raise AuthenticationError(f"Login failed: {e}") from e

        token = (data or {}).get('token')
        if not token:
            raise AuthenticationError("Login failed: no token returned")
        self.token = token
        logging.debug("Authenticated with Canvus server")

    def logout(self):
        if not self.token:
            return
        self._request('POST', 'users/logout', json_body={})
        self.token = None

    # --- Capabilities ---

    def list_canvases(self) -> List[Canvas]:
        data = self._request('GET', 'canvases') or []
        return [
            Canvas(
                id=str(item['id']),
                name=item.get('name', ''),
                state=item.get('state'),
                folder_id=item.get('folder_id'),
            )
            for item in data
        ]

    def list_widgets(self, canvas_id: str) -> List[Widget]:
        data = self._request('GET', f"canvases/{canvas_id}/widgets") or []
        return [Widget(id=str(item['id']), widget_type=item.get('widget_type', '')) for item in data]

    def _get_media_details(self, kind: WidgetType, canvas_id: str, widget_id: str) -> MediaDetails:
        data = self._request('GET', f"canvases/{canvas_id}/{_DETAIL_PATHS[kind]}/{widget_id}") or {}
        return MediaDetails(
            hash=data.get('hash') or '',
            original_filename=data.get('original_filename') or '',
            title=data.get('title') or '',
        )

    def get_image_details(self, canvas_id: str, widget_id: str) -> MediaDetails:
        return self._get_media_details(WidgetType.IMAGE, canvas_id, widget_id)

    def get_pdf_details(self, canvas_id: str, widget_id: str) -> MediaDetails:
        return self._get_media_details(WidgetType.PDF, canvas_id, widget_id)

    def get_video_details(self, canvas_id: str, widget_id: str) -> MediaDetails:
        return self._get_media_details(WidgetType.VIDEO, canvas_id, widget_id)

    def get_canvas_background(self, canvas_id: str) -> CanvasBackground:
        data = self._request('GET', f"canvases/{canvas_id}/background") or {}
        image = data.get('image') or {}
        return CanvasBackground(type=data.get('type', ''), image_hash=image.get('hash') or None)

    def get_asset_by_hash(self, canvas_id: str, asset_hash: str) -> bytes:
        return self._request('GET', f"assets/{asset_hash}", headers={'canvas-id': canvas_id}, raw=True)
