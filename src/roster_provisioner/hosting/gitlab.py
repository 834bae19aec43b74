"""GitLab backend over the REST v4 API.

Repositories are created through GitLab's project import: the new project is
pointed at the template's clone URL (authenticated as the token owner), which
carries the template's full history. The import runs asynchronously, so the
project only accepts configuration once ``import_status`` is ``finished``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any
from urllib.parse import quote, urlparse

import requests

from roster_provisioner.errors import ErrorKind, HostingError, PreflightError
from roster_provisioner.hosting.client import HostingClient, RepoHandle
from roster_provisioner.logging import REDACTED
from roster_provisioner.roster.naming import PermissionLevel

logger = logging.getLogger(__name__)

ACCESS_LEVELS: dict[PermissionLevel, int] = {
    PermissionLevel.DEVELOPER: 30,
}
ADMIN_ACCESS_LEVEL = 60

READY_IMPORT_STATUSES = {"finished", "none"}


def _path_id(path: str) -> str:
    """URL-encode a ``namespace/project`` path for use as a GitLab id."""

    return quote(path.strip().strip("/"), safe="")


class GitLabClient(HostingClient):
    """Small wrapper around the GitLab REST API for provisioning."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://git.uwaterloo.ca",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitLab token is required")

        self._token = token
        self._base_url = base_url.rstrip("/")
        self._api_url = f"{self._base_url}/api/v4"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "PRIVATE-TOKEN": token,
                "Accept": "application/json",
                "User-Agent": "roster-provisioner",
            }
        )

        self._lock = threading.Lock()
        self._username: str | None = None
        self._namespace_ids: dict[str, int] = {}
        self._user_ids: dict[str, int] = {}

    def _url(self, path: str) -> str:
        return f"{self._api_url}/{path.lstrip('/')}"

    def _redact(self, text: str) -> str:
        return text.replace(self._token, REDACTED)

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, self._url(path), timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise HostingError(
                ErrorKind.OTHER,
                self._redact(f"{method} {path} failed: {e}"),
                retryable=True,
            ) from e

    def _error_from_response(
        self,
        resp: requests.Response,
        action: str,
        *,
        not_found: ErrorKind = ErrorKind.NOT_FOUND,
        not_found_retryable: bool = False,
    ) -> HostingError:
        detail = ""
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            raw = data.get("message") or data.get("error")
            if raw:
                detail = str(raw)
        message = self._redact(f"{action}: {detail}" if detail else action)

        status = resp.status_code
        if status in (401, 403):
            return HostingError(ErrorKind.FORBIDDEN, message, status=status)
        if status == 404:
            return HostingError(not_found, message, status=status, retryable=not_found_retryable)
        if status == 409 or (status in (400, 422) and "has already been taken" in detail):
            return HostingError(ErrorKind.CONFLICT, message, status=status)
        if status == 429 or status >= 500:
            return HostingError(ErrorKind.OTHER, message, status=status, retryable=True)
        return HostingError(ErrorKind.OTHER, message, status=status)

    def _get_json(self, path: str, action: str, **kwargs: Any) -> Any:
        resp = self._request("GET", path, **kwargs)
        if not resp.ok:
            raise self._error_from_response(resp, action)
        return resp.json()

    def current_username(self) -> str:
        if self._username is None:
            data = self._get_json("user", "Look up current user")
            username = data.get("username") if isinstance(data, dict) else None
            if not isinstance(username, str) or not username:
                raise HostingError(ErrorKind.OTHER, "Unexpected /user response: missing username")
            with self._lock:
                self._username = username
        return self._username

    def _namespace_id(self, group: str) -> int:
        cached = self._namespace_ids.get(group)
        if cached is not None:
            return cached

        data = self._get_json(f"groups/{_path_id(group)}", f"Look up group {group}")
        group_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(group_id, int):
            raise HostingError(ErrorKind.OTHER, f"Unexpected group response for {group}")
        with self._lock:
            self._namespace_ids[group] = group_id
        return group_id

    def _user_id(self, username: str) -> int:
        cached = self._user_ids.get(username)
        if cached is not None:
            return cached

        users = self._get_json("users", f"Look up user {username}", params={"username": username})
        if not isinstance(users, list) or not users:
            raise HostingError(ErrorKind.NOT_FOUND, f"User {username} does not exist")
        user_id = users[0].get("id") if isinstance(users[0], dict) else None
        if not isinstance(user_id, int):
            raise HostingError(ErrorKind.OTHER, f"Unexpected user response for {username}")
        with self._lock:
            self._user_ids[username] = user_id
        return user_id

    def _import_url(self, template_ref: str) -> str:
        parsed = urlparse(self._base_url)
        scheme = parsed.scheme or "https"
        host = parsed.netloc or parsed.path
        user = quote(self.current_username(), safe="")
        token = quote(self._token, safe="")
        return f"{scheme}://{user}:{token}@{host}/{template_ref.strip('/')}.git"

    def verify_access(self, group: str, template_ref: str) -> None:
        try:
            username = self.current_username()
            namespace_id = self._namespace_id(group)
            self._get_json(f"projects/{_path_id(template_ref)}", f"Look up template {template_ref}")
        except HostingError as e:
            raise PreflightError(str(e)) from e

        logger.info(
            "Authenticated with GitLab",
            extra={"user": username, "group": group, "namespace_id": namespace_id},
        )

    def create_repo_from_template(
        self,
        group: str,
        template_ref: str,
        new_name: str,
    ) -> RepoHandle:
        payload = {
            "name": new_name,
            "path": new_name,
            "namespace_id": self._namespace_id(group),
            "visibility": "private",
            "import_url": self._import_url(template_ref),
        }
        resp = self._request("POST", "projects", json=payload)
        if not resp.ok:
            raise self._error_from_response(resp, f"Create project {new_name}")

        data: dict[str, Any] = resp.json()
        project_id = data.get("id")
        if not isinstance(project_id, int):
            raise HostingError(ErrorKind.OTHER, "Unexpected create project response: missing id")

        handle = RepoHandle(
            name=new_name,
            full_path=str(data.get("path_with_namespace") or f"{group}/{new_name}"),
            id=project_id,
            web_url=data.get("web_url"),
        )
        logger.info("Project created", extra={"repo_name": new_name, "project_id": project_id})
        return handle

    def _project(self, handle: RepoHandle) -> dict[str, Any] | None:
        resp = self._request("GET", f"projects/{handle.id}")
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise self._error_from_response(resp, f"Fetch project {handle.name}")
        data = resp.json()
        return data if isinstance(data, dict) else None

    def repo_is_ready(self, handle: RepoHandle) -> bool:
        project = self._project(handle)
        if project is None:
            return False

        status = project.get("import_status") or "none"
        if status == "failed":
            detail = project.get("import_error") or "unknown error"
            raise HostingError(
                ErrorKind.OTHER, self._redact(f"Import of {handle.name} failed: {detail}")
            )
        return status in READY_IMPORT_STATUSES

    def default_branch(self, handle: RepoHandle) -> str | None:
        project = self._project(handle)
        if project is None:
            return None
        branch = project.get("default_branch")
        if not isinstance(branch, str) or not branch.strip():
            return None
        return branch

    def add_member(
        self,
        handle: RepoHandle,
        username: str,
        permission_level: PermissionLevel,
    ) -> None:
        user_id = self._user_id(username)
        payload = {"user_id": user_id, "access_level": ACCESS_LEVELS[permission_level]}
        resp = self._request("POST", f"projects/{handle.id}/members", json=payload)
        if resp.status_code == 409:
            # Already a member.
            logger.debug(
                "Member already present", extra={"repo_name": handle.name, "username": username}
            )
            return
        if not resp.ok:
            raise self._error_from_response(
                resp,
                f"Add {username} to {handle.name}",
                not_found=ErrorKind.NOT_READY,
                not_found_retryable=True,
            )
        logger.info("Member added", extra={"repo_name": handle.name, "username": username})

    def set_branch_protection(
        self,
        handle: RepoHandle,
        branch_name: str,
        *,
        forbid_force_push: bool = True,
    ) -> None:
        branch_path = f"projects/{handle.id}/protected_branches/{quote(branch_name, safe='')}"

        # Drop any inherited rule first so the values below are the ones in force.
        resp = self._request("DELETE", branch_path)
        if not resp.ok and resp.status_code != 404:
            raise self._error_from_response(resp, f"Unprotect {branch_name} on {handle.name}")

        payload = {
            "name": branch_name,
            "push_access_level": ACCESS_LEVELS[PermissionLevel.DEVELOPER],
            "merge_access_level": ACCESS_LEVELS[PermissionLevel.DEVELOPER],
            "unprotect_access_level": ADMIN_ACCESS_LEVEL,
            "allow_force_push": not forbid_force_push,
        }
        resp = self._request("POST", f"projects/{handle.id}/protected_branches", json=payload)
        if not resp.ok:
            raise self._error_from_response(
                resp,
                f"Protect {branch_name} on {handle.name}",
                not_found_retryable=True,
            )
        logger.info("Branch protected", extra={"repo_name": handle.name, "branch": branch_name})

    def close(self) -> None:
        self._session.close()
        logger.info("GitLab client closed")
