import logging
from typing import Optional
from urllib.parse import quote

import requests

from .errors import AlreadyExists, ConflictFailure, MalformedResponse, NotFound, ProviderFailure
from .settings import Settings

logger = logging.getLogger(__name__)


class GitHubClient:
    """Thin wrapper over the five GitHub REST calls the deployer needs.

    Every method returns the decoded JSON body of a successful response and
    maps failing responses onto the ``ProviderFailure`` family. No session is
    kept: each call is a standalone ``requests.request`` so concurrent rounds
    share nothing but the read-only headers.
    """

    def __init__(self, cfg: Settings, request=requests.request):
        if not cfg.GITHUB_TOKEN:
            logger.warning("GITHUB_TOKEN not set; GitHub calls will be rejected")
        self.base = cfg.GITHUB_API_BASE.rstrip("/")
        self.timeout = cfg.HTTP_TIMEOUT_SECONDS
        self.request = request
        self.headers = {
            "Authorization": f"Bearer {cfg.GITHUB_TOKEN}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base}{path}"
        logger.info("%s %s", method, url)
        try:
            return self.request(method, url, headers=dict(self.headers), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderFailure(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        return body.get("message", resp.text) if isinstance(body, dict) else resp.text

    @staticmethod
    def _json(resp: requests.Response, what: str) -> dict:
        try:
            body = resp.json()
        except ValueError as e:
            raise MalformedResponse(f"{what}: HTTP {resp.status_code} body is not JSON", status_code=resp.status_code) from e
        if not isinstance(body, dict):
            raise MalformedResponse(f"{what}: unexpected body {body!r:.60}", status_code=resp.status_code)
        return body

    def _fail(self, resp: requests.Response, what: str) -> ProviderFailure:
        return ProviderFailure(
            f"{what}: HTTP {resp.status_code} {self._message(resp)}",
            status_code=resp.status_code,
        )

    # ---------- repositories ----------
    def create_repo(self, name: str, description: str = "") -> dict:
        resp = self._call("POST", "/user/repos", json={
            "name": name,
            "description": description,
            "private": False,
            "auto_init": False,
        })
        if resp.status_code == 422:
            raise AlreadyExists(
                f"repository {name} already exists: {self._message(resp)}",
                status_code=422,
            )
        if resp.status_code != 201:
            raise self._fail(resp, f"create repository {name}")
        return self._json(resp, f"create repository {name}")

    def get_repo(self, owner: str, name: str) -> dict:
        resp = self._call("GET", f"/repos/{owner}/{name}")
        if resp.status_code == 404:
            raise NotFound(f"repository {owner}/{name} not found", status_code=404)
        if resp.status_code != 200:
            raise self._fail(resp, f"get repository {owner}/{name}")
        return self._json(resp, f"get repository {owner}/{name}")

    # ---------- contents ----------
    def get_file(self, owner: str, repo: str, path: str) -> dict:
        resp = self._call("GET", f"/repos/{owner}/{repo}/contents/{quote(path)}")
        if resp.status_code == 404:
            raise NotFound(f"{path} not found in {owner}/{repo}", status_code=404)
        if resp.status_code != 200:
            raise self._fail(resp, f"get {path}")
        return self._json(resp, f"get {path}")

    def put_file(self, owner: str, repo: str, path: str, message: str,
                 content_b64: str, sha: Optional[str] = None) -> dict:
        body = {"message": message, "content": content_b64}
        if sha:
            body["sha"] = sha
        resp = self._call("PUT", f"/repos/{owner}/{repo}/contents/{quote(path)}", json=body)
        # 409: sha does not match the file's current blob
        # 422: file exists but no sha was supplied (or the sha is malformed)
        if resp.status_code in (409, 422):
            raise ConflictFailure(
                f"{path} in {owner}/{repo} changed underneath: {self._message(resp)}",
                status_code=resp.status_code,
            )
        if resp.status_code not in (200, 201):
            raise self._fail(resp, f"put {path}")
        return self._json(resp, f"put {path}")

    # ---------- pages ----------
    def enable_pages(self, owner: str, repo: str, branch: str, path: str) -> dict:
        resp = self._call("POST", f"/repos/{owner}/{repo}/pages", json={
            "source": {"branch": branch, "path": path},
        })
        if resp.status_code == 409:
            raise AlreadyExists(f"pages already enabled for {owner}/{repo}", status_code=409)
        if resp.status_code != 201:
            raise self._fail(resp, f"enable pages for {owner}/{repo}")
        return self._json(resp, f"enable pages for {owner}/{repo}")
