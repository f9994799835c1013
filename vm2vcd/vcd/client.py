# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/vcd/client.py
"""
Cloud Director tenant session over the REST API.

Login goes through the cloudapi sessions endpoint and yields a bearer token;
everything else uses the legacy XML API:

  query service      /api/query?type=adminOrgVdc|adminVApp|virtualCenter
  VM adoption        <vimServer>/importVmAsVApp   (sourceMove=true)
  metadata           <entity>/metadata            (POST / GET / DELETE)
  tasks              <task href>                  (polled until terminal)
"""
from __future__ import annotations

import logging
import time
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests
import urllib3

from ..core.exceptions import VcdError, wrap_vcd
from ..core.logger import Log
from ..core.logging_utils import safe_logger
from ..core.utils import U
from ..migration.interfaces import TenantSession
from ..migration.models import (
    MetadataEntry,
    MetadataType,
    OrgVdcRef,
    SourceVm,
    VAppRef,
    Visibility,
)

DEFAULT_API_VERSION = "36.0"

NS_VCLOUD = "http://www.vmware.com/vcloud/v1.5"
NS_EXTENSION = "http://www.vmware.com/vcloud/extension/v1.5"
NS_XSI = "http://www.w3.org/2001/XMLSchema-instance"

_NS = {"v": NS_VCLOUD, "x": NS_EXTENSION}

_TYPED_VALUE = {
    MetadataType.STRING: "MetadataStringValue",
    MetadataType.NUMBER: "MetadataNumberValue",
    MetadataType.DATETIME: "MetadataDateTimeValue",
    MetadataType.BOOLEAN: "MetadataBooleanValue",
}
_TYPE_FROM_XSI = {v: k for k, v in _TYPED_VALUE.items()}

# General entries live in the GENERAL domain (tenant read/write); the other
# two need the SYSTEM domain and are only writable by a provider admin.
_DOMAIN = {
    Visibility.PRIVATE: "PRIVATE",
    Visibility.READ_ONLY: "READONLY",
}
_VISIBILITY_FROM_DOMAIN = {v: k for k, v in _DOMAIN.items()}

_TASK_DONE = {"success"}
_TASK_FAILED = {"error", "canceled", "aborted"}


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class VcdSession(TenantSession):
    def __init__(
        self,
        logger: Optional[logging.Logger],
        url: str,
        user: str,
        password: str,
        *,
        org: str = "System",
        api_version: str = DEFAULT_API_VERSION,
        insecure: bool = False,
        vim_server: Optional[str] = None,
        timeout: float = 60.0,
        poll_interval_s: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        http_client: Optional[Any] = None,
    ) -> None:
        if not url:
            raise ValueError("Cloud Director URL cannot be empty")
        self.logger = safe_logger(logger)
        self.url = url.rstrip("/")
        self.user = (user or "").strip()
        self.password = password or ""
        self.org = org or "System"
        self.api_version = str(api_version or DEFAULT_API_VERSION)
        self.insecure = bool(insecure)
        self.vim_server = vim_server
        self.timeout = timeout
        self.poll_interval_s = float(poll_interval_s)
        self._sleep = sleep

        self._http_client = http_client or requests
        self._session: Optional[Any] = None
        self._token: Optional[str] = None
        self._vim_server_href: Optional[str] = None

        if self.insecure:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @classmethod
    def from_config(cls, logger: Optional[logging.Logger], section: Dict[str, Any]) -> "VcdSession":
        url = str(section.get("url") or "")
        if not url:
            raise VcdError(code=2, msg="Cloud Director url is not configured")
        return cls(
            logger,
            url,
            str(section.get("user") or ""),
            U.env_or(section.get("password"), section.get("password_env")) or "",
            org=str(section.get("org") or "System"),
            api_version=str(section.get("api_version") or DEFAULT_API_VERSION),
            insecure=U.boolish(section.get("insecure", False)),
            vim_server=section.get("vim_server"),
        )

    # Session

    def __enter__(self) -> "VcdSession":
        self.login()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.logout()
        return False

    @property
    def session(self) -> Any:
        if self._session is None:
            session = self._http_client.Session()
            session.verify = not self.insecure
            self._session = session
        return self._session

    def _xml_accept(self) -> str:
        return f"application/*+xml;version={self.api_version}"

    def login(self) -> None:
        endpoint = "sessions/provider" if self.org.lower() == "system" else "sessions"
        try:
            r = self.session.post(
                f"{self.url}/cloudapi/1.0.0/{endpoint}",
                auth=(f"{self.user}@{self.org}", self.password),
                headers={"Accept": f"application/json;version={self.api_version}"},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise wrap_vcd(f"Cloud Director login failed on {self.url}", e, user=self.user, org=self.org)

        token = r.headers.get("X-VMWARE-VCLOUD-ACCESS-TOKEN")
        if not token:
            raise VcdError(msg="Cloud Director login returned no access token")
        self._token = token
        self.session.headers["Authorization"] = f"Bearer {token}"
        self.logger.info("Connected to Cloud Director: %s (org=%s, api=%s)", self.url, self.org, self.api_version)

    def logout(self) -> None:
        if not self._token:
            return
        try:
            self.session.delete(f"{self.url}/api/session", headers={"Accept": self._xml_accept()}, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.debug("Cloud Director logout failed: %s", e)
        finally:
            self._token = None
            self.session.headers.pop("Authorization", None)

    def _request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[bytes] = None,
        content_type: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Optional[ET.Element]:
        if not self._token:
            self.login()
        headers = {"Accept": self._xml_accept()}
        if content_type:
            headers["Content-Type"] = content_type
        try:
            r = self.session.request(method, url, data=body, headers=headers, params=params, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            detail = ""
            resp = getattr(e, "response", None)
            if resp is not None and resp.content:
                detail = self._error_message(resp.content)
            raise wrap_vcd(f"Cloud Director {method} failed: {detail or e}", e, url=url)
        if not r.content:
            return None
        return ET.fromstring(r.content)

    @staticmethod
    def _error_message(content: bytes) -> str:
        try:
            root = ET.fromstring(content)
        except ET.ParseError:
            return ""
        return root.get("message", "") if _local(root.tag) == "Error" else ""

    # Query service

    def _query(self, type_name: str, flt: str) -> List[ET.Element]:
        params = {"type": type_name, "format": "records", "pageSize": "128"}
        if flt:
            params["filter"] = flt
        root = self._request("GET", f"{self.url}/api/query", params=params)
        if root is None:
            return []
        return [child for child in root if _local(child.tag).endswith("Record")]

    def find_org_vdc(self, name: str) -> Optional[OrgVdcRef]:
        records = self._query("adminOrgVdc", f"name=={name}")
        if not records:
            return None
        if len(records) > 1:
            self.logger.warning("%d OrgVDCs named %s; using the first", len(records), name)
        return OrgVdcRef(name=records[0].get("name", name), href=records[0].get("href", ""))

    def find_vapp(self, vdc: OrgVdcRef, name: str) -> Optional[VAppRef]:
        records = self._query("adminVApp", f"name=={name};vdc=={vdc.href}")
        if not records:
            return None
        return VAppRef(name=records[0].get("name", name), href=records[0].get("href", ""))

    def _vim_server(self) -> str:
        if self._vim_server_href:
            return self._vim_server_href
        records = self._query("virtualCenter", f"name=={self.vim_server}" if self.vim_server else "")
        if not records:
            raise VcdError(msg=f"vCenter {self.vim_server or '(any)'} is not registered in Cloud Director")
        if len(records) > 1 and not self.vim_server:
            raise VcdError(msg="several vCenters registered in Cloud Director; set vcd.vim_server")
        self._vim_server_href = records[0].get("href", "")
        return self._vim_server_href

    # Import

    def import_vm(self, vdc: OrgVdcRef, vm: SourceVm, name: str, *, move: bool = True) -> VAppRef:
        params = ET.Element(
            f"{{{NS_EXTENSION}}}ImportVmAsVAppParams",
            {"name": name, "sourceMove": "true" if move else "false"},
        )
        ET.SubElement(params, f"{{{NS_EXTENSION}}}VmMoRef").text = vm.moref
        ET.SubElement(params, f"{{{NS_EXTENSION}}}Vdc", {"href": vdc.href})
        body = ET.tostring(params, encoding="utf-8")

        root = self._request(
            "POST",
            f"{self._vim_server()}/importVmAsVApp",
            body=body,
            content_type="application/vnd.vmware.admin.importVmAsVAppParams+xml",
        )
        if root is None:
            raise VcdError(msg=f"importVmAsVApp for {name} returned no vApp")

        for task in root.findall("v:Tasks/v:Task", _NS):
            self.wait_task(task)
        vapp = VAppRef(name=root.get("name", name), href=root.get("href", ""))
        self.logger.debug("Imported %s (%s) as %s", vm.name, vm.moref, vapp.href)
        return vapp

    # Metadata

    def add_metadata(self, target: VAppRef, entry: MetadataEntry) -> None:
        ET.register_namespace("", NS_VCLOUD)
        ET.register_namespace("xsi", NS_XSI)
        md = ET.Element(f"{{{NS_VCLOUD}}}Metadata", {"type": "application/vnd.vmware.vcloud.metadata+xml"})
        me = ET.SubElement(md, f"{{{NS_VCLOUD}}}MetadataEntry")
        domain = _DOMAIN.get(entry.visibility)
        if domain:
            ET.SubElement(me, f"{{{NS_VCLOUD}}}Domain", {"visibility": domain}).text = "SYSTEM"
        ET.SubElement(me, f"{{{NS_VCLOUD}}}Key").text = entry.key
        tv = ET.SubElement(me, f"{{{NS_VCLOUD}}}TypedValue", {f"{{{NS_XSI}}}type": _TYPED_VALUE[entry.value_type]})
        ET.SubElement(tv, f"{{{NS_VCLOUD}}}Value").text = entry.value

        task = self._request(
            "POST",
            f"{target.href}/metadata",
            body=ET.tostring(md, encoding="utf-8"),
            content_type="application/vnd.vmware.vcloud.metadata+xml",
        )
        if task is not None:
            self.wait_task(task)

    def get_metadata(self, target: VAppRef) -> List[MetadataEntry]:
        root = self._request("GET", f"{target.href}/metadata")
        if root is None:
            return []
        entries: List[MetadataEntry] = []
        for me in root.findall("v:MetadataEntry", _NS):
            domain = me.find("v:Domain", _NS)
            tv = me.find("v:TypedValue", _NS)
            xsi_type = tv.get(f"{{{NS_XSI}}}type", "") if tv is not None else ""
            entries.append(
                MetadataEntry(
                    key=me.findtext("v:Key", "", _NS),
                    value=tv.findtext("v:Value", "", _NS) if tv is not None else "",
                    value_type=_TYPE_FROM_XSI.get(xsi_type.split(":")[-1], MetadataType.STRING),
                    visibility=(
                        _VISIBILITY_FROM_DOMAIN.get(domain.get("visibility", ""), Visibility.GENERAL)
                        if domain is not None
                        else Visibility.GENERAL
                    ),
                )
            )
        return entries

    def remove_metadata(self, target: VAppRef, key: str, visibility: Visibility = Visibility.GENERAL) -> None:
        prefix = "SYSTEM/" if visibility in _DOMAIN else ""
        task = self._request("DELETE", f"{target.href}/metadata/{prefix}{quote(key, safe='')}")
        if task is not None:
            self.wait_task(task)

    # Tasks

    def wait_task(self, task: ET.Element) -> None:
        href = task.get("href", "")
        status = task.get("status", "")
        while status not in _TASK_DONE:
            if status in _TASK_FAILED:
                error = task.find("v:Error", _NS)
                msg = error.get("message", "") if error is not None else ""
                raise VcdError(msg=f"Cloud Director task {task.get('operationName', href)} {status}: {msg or 'no detail'}")
            self._sleep(self.poll_interval_s)
            fresh = self._request("GET", href)
            if fresh is None:
                raise VcdError(msg=f"Cloud Director task {href} vanished")
            task = fresh
            status = task.get("status", "")
            Log.trace(self.logger, "vCD task %s: %s", href.rsplit("/", 1)[-1], status)
