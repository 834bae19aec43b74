"""GitHub backend built on PyGithub.

Each repository is a fork of the template into the target organization under
a new name, which keeps the template's full history. GitHub creates forks
asynchronously; a fork is ready once its default branch resolves.
"""

from __future__ import annotations

import logging
import threading

from github import Auth, Github, GithubException, UnknownObjectException
from github.Organization import Organization
from github.Repository import Repository

from roster_provisioner.errors import ErrorKind, HostingError, PreflightError
from roster_provisioner.hosting.client import HostingClient, RepoHandle
from roster_provisioner.roster.naming import PermissionLevel

logger = logging.getLogger(__name__)

PERMISSIONS: dict[PermissionLevel, str] = {
    PermissionLevel.DEVELOPER: "push",
}


def _error_from_exception(
    e: GithubException,
    action: str,
    *,
    not_found: ErrorKind = ErrorKind.NOT_FOUND,
    not_found_retryable: bool = False,
) -> HostingError:
    detail = e.data.get("message") if isinstance(e.data, dict) else None
    message = f"{action}: {detail}" if detail else action

    status = e.status
    if status in (401, 403):
        return HostingError(ErrorKind.FORBIDDEN, message, status=status)
    if status == 404:
        return HostingError(not_found, message, status=status, retryable=not_found_retryable)
    if status in (409, 422):
        return HostingError(ErrorKind.CONFLICT, message, status=status)
    if status == 429 or status >= 500:
        return HostingError(ErrorKind.OTHER, message, status=status, retryable=True)
    return HostingError(ErrorKind.OTHER, message, status=status)


class GitHubClient(HostingClient):
    """Small wrapper around PyGithub for the operations provisioning needs."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=base_url)
        self._lock = threading.Lock()
        self._organizations: dict[str, Organization] = {}
        self._templates: dict[str, Repository] = {}

    def _organization(self, group: str) -> Organization:
        cached = self._organizations.get(group)
        if cached is not None:
            return cached
        try:
            org = self._github.get_organization(group)
        except GithubException as e:
            raise _error_from_exception(e, f"Look up organization {group}") from e
        with self._lock:
            self._organizations[group] = org
        return org

    def _template(self, template_ref: str) -> Repository:
        cached = self._templates.get(template_ref)
        if cached is not None:
            return cached
        try:
            repo = self._github.get_repo(template_ref)
        except GithubException as e:
            raise _error_from_exception(e, f"Look up template {template_ref}") from e
        with self._lock:
            self._templates[template_ref] = repo
        return repo

    def _repo(self, handle: RepoHandle) -> Repository:
        try:
            return self._github.get_repo(handle.full_path)
        except GithubException as e:
            raise _error_from_exception(
                e,
                f"Fetch repository {handle.full_path}",
                not_found=ErrorKind.NOT_READY,
                not_found_retryable=True,
            ) from e

    def verify_access(self, group: str, template_ref: str) -> None:
        try:
            org = self._organization(group)
            self._template(template_ref)
        except HostingError as e:
            raise PreflightError(str(e)) from e

        logger.info(
            "Authenticated with GitHub",
            extra={"organization": org.login, "template": template_ref},
        )

    def create_repo_from_template(
        self,
        group: str,
        template_ref: str,
        new_name: str,
    ) -> RepoHandle:
        org = self._organization(group)
        try:
            org.get_repo(new_name)
        except UnknownObjectException:
            pass
        except GithubException as e:
            raise _error_from_exception(e, f"Check for existing {group}/{new_name}") from e
        else:
            raise HostingError(ErrorKind.CONFLICT, f"Repository {group}/{new_name} already exists")

        template = self._template(template_ref)
        try:
            fork = template.create_fork(
                organization=group,
                name=new_name,
                default_branch_only=False,
            )
        except GithubException as e:
            raise _error_from_exception(e, f"Fork {template_ref} as {group}/{new_name}") from e

        logger.info("Repository forked", extra={"repo_name": new_name, "full_name": fork.full_name})
        return RepoHandle(
            name=fork.name,
            full_path=fork.full_name,
            id=fork.id,
            web_url=fork.html_url,
        )

    def repo_is_ready(self, handle: RepoHandle) -> bool:
        try:
            repo = self._github.get_repo(handle.full_path)
            repo.get_branch(repo.default_branch)
        except UnknownObjectException:
            return False
        except GithubException as e:
            # 409: the fork exists but its git data has not been copied yet.
            if e.status == 409:
                return False
            raise _error_from_exception(e, f"Probe {handle.full_path}") from e
        return True

    def default_branch(self, handle: RepoHandle) -> str | None:
        branch = self._repo(handle).default_branch
        return branch or None

    def add_member(
        self,
        handle: RepoHandle,
        username: str,
        permission_level: PermissionLevel,
    ) -> None:
        try:
            self._github.get_user(username)
        except UnknownObjectException as e:
            raise HostingError(ErrorKind.NOT_FOUND, f"User {username} does not exist") from e
        except GithubException as e:
            raise _error_from_exception(e, f"Look up user {username}") from e

        repo = self._repo(handle)
        try:
            repo.add_to_collaborators(username, permission=PERMISSIONS[permission_level])
        except GithubException as e:
            raise _error_from_exception(
                e,
                f"Add {username} to {handle.full_path}",
                not_found=ErrorKind.NOT_READY,
                not_found_retryable=True,
            ) from e
        logger.info("Collaborator added", extra={"repo_name": handle.name, "username": username})

    def set_branch_protection(
        self,
        handle: RepoHandle,
        branch_name: str,
        *,
        forbid_force_push: bool = True,
    ) -> None:
        repo = self._repo(handle)
        try:
            branch = repo.get_branch(branch_name)
            branch.edit_protection(
                allow_force_pushes=not forbid_force_push,
                enforce_admins=False,
            )
        except GithubException as e:
            raise _error_from_exception(
                e,
                f"Protect {branch_name} on {handle.full_path}",
                not_found_retryable=True,
            ) from e
        logger.info("Branch protected", extra={"repo_name": handle.name, "branch": branch_name})

    def close(self) -> None:
        self._github.close()
        logger.info("GitHub client closed")
