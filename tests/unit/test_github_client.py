"""Unit tests for the GitHub backend with a mocked PyGithub client."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from github import Github, GithubException, UnknownObjectException

from roster_provisioner.errors import ErrorKind, HostingError, PreflightError
from roster_provisioner.hosting.client import RepoHandle
from roster_provisioner.hosting.github import GitHubClient
from roster_provisioner.roster.naming import PermissionLevel

HANDLE = RepoHandle(name="cs101-a1-abc", full_path="cs101/cs101-a1-abc", id=99)


def _not_found() -> UnknownObjectException:
    return UnknownObjectException(404, {"message": "Not Found"}, None)


def _client() -> tuple[GitHubClient, Mock]:
    api = Mock(spec=Github)
    return GitHubClient(token="ghp_test", github_api=api), api


def _fork() -> Mock:
    fork = Mock()
    fork.name = "cs101-a1-abc"
    fork.full_name = "cs101/cs101-a1-abc"
    fork.id = 99
    fork.html_url = "https://github.com/cs101/cs101-a1-abc"
    return fork


def test_create_forks_template_under_new_name() -> None:
    client, api = _client()
    org = Mock()
    org.get_repo.side_effect = _not_found()
    template = Mock()
    template.create_fork.return_value = _fork()
    api.get_organization.return_value = org
    api.get_repo.return_value = template

    handle = client.create_repo_from_template("cs101", "cs101/a1-template", "cs101-a1-abc")

    assert handle == RepoHandle(
        name="cs101-a1-abc",
        full_path="cs101/cs101-a1-abc",
        id=99,
        web_url="https://github.com/cs101/cs101-a1-abc",
    )
    api.get_repo.assert_called_once_with("cs101/a1-template")
    template.create_fork.assert_called_once_with(
        organization="cs101", name="cs101-a1-abc", default_branch_only=False
    )


def test_create_refuses_existing_repository() -> None:
    client, api = _client()
    org = Mock()
    api.get_organization.return_value = org

    with pytest.raises(HostingError) as excinfo:
        client.create_repo_from_template("cs101", "cs101/a1-template", "cs101-a1-abc")

    assert excinfo.value.kind is ErrorKind.CONFLICT
    api.get_repo.assert_not_called()


def test_organization_lookup_is_cached() -> None:
    client, api = _client()
    org = Mock()
    org.get_repo.side_effect = _not_found()
    template = Mock()
    template.create_fork.return_value = _fork()
    api.get_organization.return_value = org
    api.get_repo.return_value = template

    client.create_repo_from_template("cs101", "cs101/a1-template", "cs101-a1-abc")
    client.create_repo_from_template("cs101", "cs101/a1-template", "cs101-a1-def")

    api.get_organization.assert_called_once_with("cs101")
    api.get_repo.assert_called_once_with("cs101/a1-template")


def test_verify_access_reports_missing_template() -> None:
    client, api = _client()
    api.get_organization.return_value = Mock(login="cs101")
    api.get_repo.side_effect = _not_found()

    with pytest.raises(PreflightError) as excinfo:
        client.verify_access("cs101", "cs101/missing")

    assert "cs101/missing" in str(excinfo.value)


def test_repo_is_ready_once_default_branch_resolves() -> None:
    client, api = _client()
    repo = Mock(default_branch="main")
    repo.get_branch.side_effect = [
        GithubException(409, {"message": "Git Repository is empty."}, None),
        Mock(),
    ]
    api.get_repo.return_value = repo

    assert client.repo_is_ready(HANDLE) is False
    assert client.repo_is_ready(HANDLE) is True
    repo.get_branch.assert_called_with("main")


def test_repo_is_not_ready_while_fork_is_missing() -> None:
    client, api = _client()
    api.get_repo.side_effect = _not_found()

    assert client.repo_is_ready(HANDLE) is False


def test_default_branch_comes_from_repository() -> None:
    client, api = _client()
    api.get_repo.return_value = Mock(default_branch="trunk")

    assert client.default_branch(HANDLE) == "trunk"


def test_add_member_grants_push_permission() -> None:
    client, api = _client()
    repo = Mock()
    api.get_repo.return_value = repo

    client.add_member(HANDLE, "abc", PermissionLevel.DEVELOPER)

    api.get_user.assert_called_once_with("abc")
    repo.add_to_collaborators.assert_called_once_with("abc", permission="push")


def test_add_unknown_member_is_not_found() -> None:
    client, api = _client()
    api.get_user.side_effect = _not_found()

    with pytest.raises(HostingError) as excinfo:
        client.add_member(HANDLE, "nobody", PermissionLevel.DEVELOPER)

    assert excinfo.value.kind is ErrorKind.NOT_FOUND
    assert excinfo.value.retryable is False


def test_branch_protection_forbids_force_push() -> None:
    client, api = _client()
    branch = Mock()
    repo = Mock()
    repo.get_branch.return_value = branch
    api.get_repo.return_value = repo

    client.set_branch_protection(HANDLE, "main")

    repo.get_branch.assert_called_once_with("main")
    branch.edit_protection.assert_called_once_with(allow_force_pushes=False, enforce_admins=False)


def test_branch_protection_on_missing_branch_is_retryable() -> None:
    client, api = _client()
    repo = Mock()
    repo.get_branch.side_effect = GithubException(404, {"message": "Branch not found"}, None)
    api.get_repo.return_value = repo

    with pytest.raises(HostingError) as excinfo:
        client.set_branch_protection(HANDLE, "main")

    assert excinfo.value.kind is ErrorKind.NOT_FOUND
    assert excinfo.value.retryable is True
    assert "Branch not found" in str(excinfo.value)


@pytest.mark.parametrize(
    ("status", "kind", "retryable"),
    [
        (403, ErrorKind.FORBIDDEN, False),
        (422, ErrorKind.CONFLICT, False),
        (502, ErrorKind.OTHER, True),
        (429, ErrorKind.OTHER, True),
    ],
)
def test_status_mapping(status: int, kind: ErrorKind, retryable: bool) -> None:
    client, api = _client()
    repo = Mock()
    repo.add_to_collaborators.side_effect = GithubException(status, {"message": "nope"}, None)
    api.get_repo.return_value = repo

    with pytest.raises(HostingError) as excinfo:
        client.add_member(HANDLE, "abc", PermissionLevel.DEVELOPER)

    assert excinfo.value.kind is kind
    assert excinfo.value.retryable is retryable
    assert excinfo.value.status == status


def test_close_closes_github_connection() -> None:
    client, api = _client()

    client.close()

    api.close.assert_called_once_with()
