# -*- coding: utf-8 -*-
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from applicant_portal.config import settings
from applicant_portal.errors import GateIssue

JSON = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class ClientError:
    message: str
    status_code: Optional[int] = None  # None: never reached the server
    issues: List[GateIssue] = field(default_factory=list)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


Result = Tuple[Optional[Dict[str, Any]], Optional[ClientError]]


def _error_from_response(r: requests.Response) -> ClientError:
    try:
        body = r.json()
    except ValueError:
        return ClientError(r.text or r.reason or "Request failed", r.status_code)
    detail = body.get("detail") if isinstance(body, dict) else body
    if isinstance(detail, dict):
        issues = [GateIssue(i.get("field", ""), i.get("message", "")) for i in detail.get("issues", [])]
        return ClientError(detail.get("message", "Request failed"), r.status_code, issues)
    if isinstance(detail, list):  # FastAPI request validation
        return ClientError("; ".join(str(d.get("msg", d)) for d in detail), r.status_code)
    return ClientError(str(detail), r.status_code)


class ApplicationTransport:
    """HTTP access to the portal API for one owner. Never raises for HTTP or network errors."""

    def __init__(
        self,
        owner_id: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.owner_id = owner_id
        self.base = f"{(api_url or settings.API_URL).rstrip('/')}{settings.API_V1_STR}"
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {**JSON, settings.OWNER_HEADER: self.owner_id}

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Result:
        try:
            r = self.session.request(
                method, f"{self.base}{path}", headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            return None, ClientError(str(e))
        if not r.ok:
            return None, _error_from_response(r)
        try:
            return r.json(), None
        except ValueError:  # e.g. a proxy login page answering 200
            return None, ClientError("Invalid response from server", r.status_code)

    def get_application(self) -> Result:
        return self._request("GET", "/application")

    def save_application(
        self, fields: Dict[str, Any], consent_given: Optional[bool] = None, status: str = "in_progress"
    ) -> Result:
        payload: Dict[str, Any] = {"fields": fields, "status": status}
        if consent_given is not None:
            payload["consent_given"] = consent_given
        return self._request("POST", "/application", payload)

    def submit_application(self, fields: Dict[str, Any], consent_given: bool) -> Result:
        return self._request("POST", "/application/submit", {"fields": fields, "consent_given": consent_given})

    def confirm_attendance(self) -> Result:
        return self._request("POST", "/application/confirm", {})

    def decline_attendance(self) -> Result:
        return self._request("POST", "/application/decline", {})
