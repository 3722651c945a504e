from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from upgradebot.util.cancel import CancelToken, check


class HostError(RuntimeError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"github {status}: {message}")
        self.status = status


@dataclass
class Fork:
    clone_url: str
    html_url: str
    owner_login: str = ""


@dataclass
class PullRequest:
    url: str
    html_url: str = ""
    number: int = 0


class SourceHost:
    def authenticated_login(self, token: CancelToken | None = None) -> str:
        raise NotImplementedError

    def create_fork(self, owner: str, repo: str, token: CancelToken | None = None) -> Fork:
        raise NotImplementedError

    def star_repo(self, owner: str, repo: str, token: CancelToken | None = None) -> None:
        raise NotImplementedError

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        base: str,
        head: str,
        token: CancelToken | None = None,
    ) -> PullRequest:
        raise NotImplementedError


class GitHubClient(SourceHost):
    def __init__(
        self,
        auth_token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "upgradebot",
        }
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def authenticated_login(self, token: CancelToken | None = None) -> str:
        data = self._request("GET", "/user", token=token)
        login = str(data.get("login") or "")
        if not login:
            raise HostError(200, "authenticated user has no login")
        return login

    def create_fork(self, owner: str, repo: str, token: CancelToken | None = None) -> Fork:
        data = self._request("POST", f"/repos/{owner}/{repo}/forks", json={}, token=token)
        return Fork(
            clone_url=str(data.get("clone_url") or ""),
            html_url=str(data.get("html_url") or ""),
            owner_login=str((data.get("owner") or {}).get("login") or ""),
        )

    def star_repo(self, owner: str, repo: str, token: CancelToken | None = None) -> None:
        # GitHub requires an explicit zero Content-Length on this PUT.
        self._request("PUT", f"/user/starred/{owner}/{repo}", headers={"Content-Length": "0"}, token=token)

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        base: str,
        head: str,
        token: CancelToken | None = None,
    ) -> PullRequest:
        data = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "base": base, "head": head},
            token=token,
        )
        return PullRequest(
            url=str(data.get("url") or ""),
            html_url=str(data.get("html_url") or ""),
            number=int(data.get("number") or 0),
        )

    def _request(
        self,
        method: str,
        path: str,
        json: Any | None = None,
        headers: Dict[str, str] | None = None,
        token: CancelToken | None = None,
    ) -> Dict[str, Any]:
        check(token)
        resp = self._client.request(method, path, json=json, headers=headers)
        check(token)
        if resp.status_code >= 400:
            raise HostError(resp.status_code, _error_message(resp))
        if resp.status_code == 204 or not resp.content:
            return {}
        body = resp.json()
        return body if isinstance(body, dict) else {"items": body}


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text.strip()
