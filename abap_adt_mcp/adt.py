import logging
import threading
from typing import Any, Dict, Literal, NamedTuple, Optional, TypedDict, Union
from xml.etree import ElementTree as et

import requests

from .config import AdtSettings
from .xml_tree import parse_xml_tree, text_of

logger = logging.getLogger(__name__)

REDACTED_HEADERS = ("authorization", "cookie", "set-cookie")
MAX_REQUEST_BODY = 2000
MAX_RESPONSE_TEXT = 5000


class SapHttpError(Exception):
    """Rich HTTP error carrying SAP request/response context.

    Attributes:
        method: HTTP method used.
        url: Full URL requested.
        params: Query parameters dict.
        request_headers: Dict of request headers (sensitive values redacted).
        request_body: String representation of the request body (truncated).
        status_code: HTTP status code if any.
        response_headers: Dict of response headers (sensitive values redacted).
        response_text: Response body text (truncated).
        original: Original exception raised by requests.
    """

    def __init__(
        self,
        *,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        request_headers: Optional[Dict[str, str]] = None,
        request_body: Optional[str] = None,
        status_code: Optional[int] = None,
        response_headers: Optional[Dict[str, str]] = None,
        response_text: Optional[str] = None,
        original: Optional[BaseException] = None,
        sap_message: Optional[str] = None,
    ) -> None:
        self.method = method
        self.url = url
        self.params = params or {}
        self.request_headers = request_headers or {}
        self.request_body = request_body
        self.status_code = status_code
        self.response_headers = response_headers or {}
        self.response_text = response_text
        self.original = original
        self.sap_message = sap_message

        msg_bits = [f"{self.method} {self.url}"]
        if self.status_code is not None:
            msg_bits.append(f"HTTP {self.status_code}")
            if sap_message:
                msg_bits.append(sap_message)
            elif original is not None:
                msg_bits.append(f"error: {type(original).__name__}")
        elif original is not None:
            # no response at all: the transport message is the only diagnosis
            msg_bits.append(f"error: {type(original).__name__}: {original}")
        super().__init__(" | ".join(msg_bits))

    @property
    def summary(self) -> str:
        """One line without headers or bodies, safe to show to tool callers."""
        return self.args[0]

    def __str__(self) -> str:
        parts = [self.summary]
        if self.original is not None:
            parts.append(f"original={self.original}")
        parts.append(f"params={self.params}")
        if self.request_headers:
            parts.append(f"request_headers={self.request_headers}")
        if self.request_body is not None:
            parts.append(f"request_body=\n{self.request_body}")
        if self.response_headers:
            parts.append(f"response_headers={self.response_headers}")
        if self.response_text is not None:
            parts.append(f"response_text=\n{self.response_text}")
        return "\n".join(parts)


class AdtResponse(NamedTuple):
    status: int
    data: Union[str, Dict[str, Any]]


class HttpRequestParameters(TypedDict):
    host: str
    csrf_token: str
    statefulness: Literal["stateless", "stateful"]
    request_number: int
    session: requests.Session


def _redact_headers(headers) -> Dict[str, str]:
    if not headers:
        return {}
    redacted = {}
    for key, value in headers.items():
        if str(key).strip().lower() in REDACTED_HEADERS:
            redacted[key] = "<redacted>"
        else:
            redacted[key] = value
    return redacted


def _body_text(body) -> Optional[str]:
    if body is None:
        return None
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = str(body)
    if len(text) > MAX_REQUEST_BODY:
        text = text[:MAX_REQUEST_BODY] + "... [truncated]"
    return text


def sap_error_message(text: Optional[str]) -> Optional[str]:
    """Pull the message out of an ADT ``exc:exception`` document, if that is what ``text`` is."""
    if not text or not text.lstrip().startswith("<"):
        return None
    try:
        tree = parse_xml_tree(text)
    except et.ParseError:
        return None
    exception = tree.get("exc:exception")
    if not isinstance(exception, dict):
        return None
    for key in ("localizedMessage", "exc:localizedMessage", "message", "exc:message"):
        message = text_of(exception.get(key)).strip()
        if message:
            return " ".join(message.split())
    return None


def parse_body(response: requests.Response) -> Union[str, Dict[str, Any]]:
    """Turn a response body into a RawResponse.

    XML is converted to a tree; anything else, including XML the parser
    rejects, is returned as text.
    """
    text = response.text
    content_type = response.headers.get("content-type", "").lower()
    if "xml" in content_type or text.lstrip().startswith("<"):
        try:
            return parse_xml_tree(response.content)
        except et.ParseError:
            logger.debug("Response from %s is not well-formed XML, keeping text", response.url)
    return text


def _csrf_rejected(response: requests.Response) -> bool:
    return response.status_code == 403 and response.headers.get("x-csrf-token", "").lower() == "required"


class Adt:
    """ADT session shared by all tool calls.

    Requests are serialized: the ``requests.Session``, the CSRF token and the
    request counter form one stateful conversation with the SAP server.
    """

    csrf_token: str = "fetch"
    request_number: int = 0
    statefulness: Literal["stateless", "stateful"] = "stateful"

    def __init__(self, settings: AdtSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.auth = requests.auth.HTTPBasicAuth(settings.sap_user, settings.sap_password)
        self.sap_host = settings.sap_host
        self.client = settings.sap_client
        self.language = settings.sap_language
        # reentrant so a re-login can run inside a request that holds it
        self._lock = threading.RLock()

    def build_request_parameters(self) -> HttpRequestParameters:
        http_request_parameters: HttpRequestParameters = {
            "host": self.sap_host,
            "csrf_token": self.csrf_token,
            "statefulness": self.statefulness,
            "request_number": self.request_number,
            "session": self.session,
        }
        self.request_number += 1
        return http_request_parameters

    def _request(
        self, method: str, url: str, params=None, body=None, headers=None, relogin: bool = True
    ) -> requests.Response:
        with self._lock:
            return self._send(method, url, params=params, body=body, headers=headers, relogin=relogin)

    def _send(self, method: str, url: str, params=None, body=None, headers=None, relogin: bool = True):
        full_url = f"{self.settings.base_url}{url}"
        params = params or {}
        http_request_parameters = self.build_request_parameters()
        request_headers = {
            "Accept": "*/*",
            "Cache-Control": "no-cache",
            "x-csrf-token": http_request_parameters["csrf_token"],
            "X-sap-adt-sessiontype": http_request_parameters["statefulness"],
        } | (headers or {})

        logger.debug("ADT %s %s #%d", method, full_url, http_request_parameters["request_number"])
        response = None
        try:
            response = self.session.request(
                method,
                full_url,
                headers=request_headers,
                params=params,
                data=body,
                timeout=self.settings.timeout,
            )
            if relogin and _csrf_rejected(response):
                logger.info("CSRF token rejected by %s, logging in again", self.sap_host)
                self.login()
                return self._send(method, url, params=params, body=body, headers=headers, relogin=False)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            resp = response if response is not None else getattr(e, "response", None)
            prepared = getattr(resp, "request", None) if resp is not None else None
            if prepared is None:
                prepared = getattr(e, "request", None)

            full_text = resp.text if resp is not None and hasattr(resp, "text") else None
            response_text = full_text
            if response_text and len(response_text) > MAX_RESPONSE_TEXT:
                response_text = response_text[:MAX_RESPONSE_TEXT] + "... [truncated]"

            raise SapHttpError(
                method=getattr(prepared, "method", None) or method,
                url=full_url,
                params=params,
                request_headers=_redact_headers(prepared.headers if prepared is not None else request_headers),
                request_body=_body_text(getattr(prepared, "body", body)),
                status_code=getattr(resp, "status_code", None) if resp is not None else None,
                response_headers=_redact_headers(resp.headers) if resp is not None else {},
                response_text=response_text,
                original=e,
                sap_message=sap_error_message(full_text),
            ) from e

    def get(self, url, params=None, headers=None) -> requests.Response:
        return self._request("GET", url, params=params, headers=headers)

    def post(self, url, params=None, body=None, headers=None) -> requests.Response:
        return self._request("POST", url, params=params, body=body, headers=headers)

    def login(self) -> str:
        with self._lock:
            self.csrf_token = "fetch"
            response = self._request(
                "GET",
                "/sap/bc/adt/compatibility/graph",
                params={"sap-client": self.client, "sap-language": self.language},
                relogin=False,
            )
            self.csrf_token = response.headers["X-CSRF-Token"]
            return self.csrf_token

    def fetch(self, url, params=None, method: str = "GET", body=None, headers=None, parse: bool = True) -> AdtResponse:
        """Perform a request and return the status with the body.

        With ``parse=False`` the body is returned as text even when it is
        XML, which is what source code endpoints need.
        """
        response = self._request(method, url, params=params, body=body, headers=headers)
        data = parse_body(response) if parse else response.text
        return AdtResponse(status=response.status_code, data=data)
