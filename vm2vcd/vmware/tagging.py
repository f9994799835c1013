# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/vmware/tagging.py
"""
vSphere Automation REST tag reader.

pyVmomi does not expose the tagging service, so tags are read over the
/api endpoints with a separate session token:

  POST   /api/session
  POST   /api/cis/tagging/tag-association?action=list-attached-tags
  GET    /api/cis/tagging/tag/{id}
  GET    /api/cis/tagging/category/{id}
  DELETE /api/session
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
import urllib3

from ..core.exceptions import VMwareError, wrap_vmware
from ..core.logging_utils import safe_logger

SESSION_HEADER = "vmware-api-session-id"


class VsphereTagReader:
    def __init__(
        self,
        logger: Optional[logging.Logger],
        host: str,
        user: str,
        password: str,
        *,
        port: int = 443,
        insecure: bool = False,
        timeout: float = 30.0,
        http_client: Optional[Any] = None,
    ) -> None:
        if not host:
            raise ValueError("Host cannot be empty")
        self.logger = safe_logger(logger)
        self.host = host.strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port)
        self.insecure = bool(insecure)
        self.timeout = timeout

        self._http_client = http_client or requests
        self._session: Optional[Any] = None
        self._token: Optional[str] = None
        self._category_names: Dict[str, str] = {}

        if self.insecure:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}/api"

    @property
    def session(self) -> Any:
        if self._session is None:
            session = self._http_client.Session()
            session.verify = not self.insecure
            self._session = session
        return self._session

    def login(self) -> None:
        try:
            r = self.session.post(
                f"{self.base_url}/session",
                auth=(self.user, self.password),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise wrap_vmware(f"vSphere Automation login failed on {self.host}", e, user=self.user)
        self._token = str(r.json())
        self.session.headers[SESSION_HEADER] = self._token
        self.logger.debug("vSphere Automation session opened on %s", self.host)

    def logout(self) -> None:
        if not self._token:
            return
        try:
            self.session.delete(f"{self.base_url}/session", timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.debug("vSphere Automation logout failed: %s", e)
        finally:
            self._token = None
            self.session.headers.pop(SESSION_HEADER, None)

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self._token:
            self.login()
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
            r.raise_for_status()
        except requests.RequestException as e:
            raise wrap_vmware(f"vSphere Automation {method} {path} failed", e)
        return r.json() if r.content else None

    def attached_tag_ids(self, vm_moref: str) -> List[str]:
        body = {"object_id": {"id": vm_moref, "type": "VirtualMachine"}}
        return list(self._call("POST", "/cis/tagging/tag-association?action=list-attached-tags", json=body) or [])

    def category_name(self, category_id: str) -> str:
        if category_id not in self._category_names:
            data = self._call("GET", f"/cis/tagging/category/{category_id}") or {}
            self._category_names[category_id] = str(data.get("name", ""))
        return self._category_names[category_id]

    def labels_for_vm(self, vm_moref: str, category: Optional[str] = None) -> List[str]:
        """Tag names on a VM in attachment order, optionally filtered by category name."""
        if not vm_moref:
            raise VMwareError(msg="VM has no managed object id; cannot read tags")
        labels: List[str] = []
        for tag_id in self.attached_tag_ids(vm_moref):
            tag = self._call("GET", f"/cis/tagging/tag/{tag_id}") or {}
            if category and self.category_name(str(tag.get("category_id", ""))) != category:
                continue
            name = str(tag.get("name", "")).strip()
            if name:
                labels.append(name)
        self.logger.debug("Tags on %s: %s", vm_moref, labels)
        return labels
