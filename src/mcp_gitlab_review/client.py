"""GitLab API client using httpx."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import GitLabConfig
from .exceptions import GitLabApiError, GitLabAuthError, GitLabNotFoundError, ReviewInputError

logger = logging.getLogger(__name__)


class GitLabClient:
    """Async HTTP client for the GitLab REST API v4."""

    def __init__(self, config: GitLabConfig | None = None) -> None:
        self.config = config or GitLabConfig.from_env()
        self.config.validate()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={
                "PRIVATE-TOKEN": self.config.token,
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            verify=self.config.ssl_verify,
        )
        # Project path → id, seeded from GITLAB_PROJECT_MAP and filled by lookups.
        self._project_ids: dict[str, int] = {}

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _encode_id(project_id: str | int) -> str:
        """Encode a project ID. Numeric IDs pass through; paths are URL-encoded."""
        if isinstance(project_id, int):
            return str(project_id)
        try:
            return str(int(project_id))
        except ValueError:
            return quote(project_id, safe="")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
        raw: bool = False,
    ) -> Any:
        """Make an API request and return parsed JSON (or raw text if raw=True)."""
        kwargs: dict[str, Any] = {"params": params}
        if json_data is not None:
            kwargs["json"] = json_data

        resp = await self._client.request(method, path, **kwargs)
        logger.debug("%s %s -> %s", method, path, resp.status_code)

        if resp.status_code in (401, 403):
            raise GitLabAuthError(resp.status_code, resp.text)
        if resp.status_code == 404:
            raise GitLabNotFoundError(resp.text)
        if not resp.is_success:
            raise GitLabApiError(resp.status_code, resp.reason_phrase or "", resp.text)

        if resp.status_code == 204 or not resp.content:
            return None

        if raw:
            return resp.text

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response, check URL and authentication"
            raise GitLabApiError(resp.status_code, msg, resp.text[:500])

        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise GitLabApiError(
                resp.status_code,
                f"JSON parse error: {e}",
                resp.text[:500],
            ) from e

    async def get(
        self, path: str, params: dict[str, Any] | None = None, *, raw: bool = False
    ) -> Any:
        return await self._request("GET", path, params=params, raw=raw)

    async def post(self, path: str, json_data: Any = None, **kwargs: Any) -> Any:
        return await self._request("POST", path, json_data=json_data, **kwargs)

    # ── Projects ──────────────────────────────────────────────────

    async def get_project(self, project_id: str | int) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}")

    async def resolve_project_id(self, project: str | int) -> int:
        """Resolve a numeric id, namespaced path or project URL to a numeric id.

        Order: numeric passthrough, ``GITLAB_PROJECT_MAP`` by project name,
        ids cached from earlier lookups, then the projects API.
        """
        if isinstance(project, int):
            return project
        value = project.strip()
        if value.isdigit():
            return int(value)

        path = _project_path_from_url(value) if value.startswith(("http://", "https://")) else value
        path = path.strip("/")
        if not path:
            msg = f"Could not extract project path from: {project}"
            raise ReviewInputError(msg)

        name = path.rsplit("/", 1)[-1]
        mapped = self.config.project_map.get(name)
        if mapped:
            return mapped
        if path in self._project_ids:
            return self._project_ids[path]

        logger.info("Project %s not in GITLAB_PROJECT_MAP, looking it up via the API", name)
        data = await self.get_project(path)
        self._project_ids[path] = int(data["id"])
        return self._project_ids[path]

    # ── Branches ──────────────────────────────────────────────────

    async def list_branches(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        enc = self._encode_id(project_id)
        p = {"per_page": 100, **(params or {})}
        return await self.get(f"/projects/{enc}/repository/branches", params=p)

    async def get_branch(self, project_id: str | int, branch: str) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/repository/branches/{quote(branch, safe='')}")

    # ── Repository ────────────────────────────────────────────────

    async def list_repository_tree(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        enc = self._encode_id(project_id)
        p = {"per_page": 100, "recursive": True, **(params or {})}
        return await self.get(f"/projects/{enc}/repository/tree", params=p)

    async def list_branch_files(self, project_id: str | int, ref: str) -> list[dict]:
        """All blobs (not directories) on *ref*, walking the tree recursively."""
        tree = await self.list_repository_tree(project_id, {"ref": ref})
        return [item for item in tree or [] if item.get("type") == "blob"]

    async def get_file(self, project_id: str | int, file_path: str, ref: str) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(
            f"/projects/{enc}/repository/files/{quote(file_path, safe='')}",
            params={"ref": ref},
        )

    async def get_file_content(self, project_id: str | int, file_path: str, ref: str) -> str:
        """Fetch a file and return its decoded text."""
        data = await self.get_file(project_id, file_path, ref)
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            try:
                return base64.b64decode(content).decode("utf-8", errors="replace")
            except binascii.Error as e:
                raise GitLabApiError(200, f"Invalid base64 content: {e}", file_path) from e
        return content

    # ── Commits ───────────────────────────────────────────────────

    async def get_commit(self, project_id: str | int, sha: str) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/repository/commits/{quote(sha, safe='')}")

    async def get_commit_diff(self, project_id: str | int, sha: str) -> list[dict]:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/repository/commits/{quote(sha, safe='')}/diff")

    async def add_commit_comment(self, project_id: str | int, sha: str, note: str) -> dict:
        enc = self._encode_id(project_id)
        return await self.post(
            f"/projects/{enc}/repository/commits/{quote(sha, safe='')}/comments",
            {"note": note},
        )

    # ── Merge Requests ────────────────────────────────────────────

    async def list_merge_requests(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        enc = self._encode_id(project_id)
        p = {"per_page": 20, **(params or {})}
        return await self.get(f"/projects/{enc}/merge_requests", params=p)

    async def get_merge_request(self, project_id: str | int, mr_iid: int) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/merge_requests/{mr_iid}")

    async def get_merge_request_changes(self, project_id: str | int, mr_iid: int) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/merge_requests/{mr_iid}/changes")

    # ── MR Notes ──────────────────────────────────────────────────

    async def add_mr_note(
        self,
        project_id: str | int,
        mr_iid: int,
        body: str,
        internal: bool = False,
    ) -> dict:
        enc = self._encode_id(project_id)
        data: dict[str, Any] = {"body": body}
        if internal:
            data["internal"] = True
        return await self.post(f"/projects/{enc}/merge_requests/{mr_iid}/notes", data)


def _project_path_from_url(url: str) -> str:
    """Namespaced project path of a GitLab URL (everything before ``/-/``)."""
    path = httpx.URL(url).path
    parts = [part for part in path.split("/") if part]
    if "-" in parts:
        parts = parts[: parts.index("-")]
    return "/".join(parts)
