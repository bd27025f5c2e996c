"""
GitHub access: repository loading and commit history via the REST API
"""
import asyncio
from datetime import datetime
from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, urlparse

import httpx

from core.config import GITHUB_API_URL, GITHUB_TOKEN, LOADER_CONCURRENCY, MAX_LOAD_BYTES, COMMIT_FETCH_LIMIT
from core.errors import LoadError, LoadErrorKind
from models.documents import CommitData, Document
from utils.logging import log
from utils.settle import settle_all

# Paths under these directories are never fetched (any depth)
IGNORED_DIRECTORIES = {"node_modules", ".git", "dist", "build", ".next", "coverage", "test", "__tests__"}

# File name globs that are never fetched
IGNORED_FILE_GLOBS = [
    "package-lock.json", "pnpm-lock.yaml", "yarn.lock", "bun.lockb",
    "*.log", "*.lock", "*.map", "*.min.js", "*.min.css",
]

BINARY_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".bmp", ".svgz",
    ".pdf", ".zip", ".gz", ".tgz", ".tar", ".7z", ".rar", ".jar", ".war",
    ".exe", ".dll", ".so", ".dylib", ".bin", ".class", ".pyc", ".o", ".a",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp3", ".mp4", ".wav", ".mov", ".avi", ".webm",
}


def parse_github_url(github_url: str) -> Tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub repository URL.

    Raises:
        LoadError(NOT_FOUND) if the URL is not a github.com repository URL
    """
    parsed = urlparse(github_url.strip())
    if parsed.hostname not in ("github.com", "www.github.com"):
        raise LoadError(LoadErrorKind.NOT_FOUND, f"Not a GitHub URL: {github_url}")

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        raise LoadError(LoadErrorKind.NOT_FOUND, f"Invalid GitHub URL: {github_url}")

    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        raise LoadError(LoadErrorKind.NOT_FOUND, f"Missing owner or repository name: {github_url}")
    return owner, repo


def is_ignored_path(path: str) -> bool:
    """True for lockfiles, logs, minified assets and build/dependency/test directories."""
    parts = PurePosixPath(path).parts
    if any(part in IGNORED_DIRECTORIES for part in parts[:-1]):
        return True
    name = parts[-1] if parts else path
    if any(fnmatch(name, pattern) for pattern in IGNORED_FILE_GLOBS):
        return True
    return PurePosixPath(name).suffix.lower() in BINARY_EXTENSIONS


def error_for_response(response: httpx.Response, what: str) -> Optional[LoadError]:
    """Map a non-success GitHub response to a LoadError (None for success)."""
    status = response.status_code
    if status < 400:
        return None
    if status == 404:
        return LoadError(LoadErrorKind.NOT_FOUND, f"{what} not found (404)")
    if status == 401:
        return LoadError(LoadErrorKind.UNAUTHORIZED, f"{what}: unauthorized (401)")
    if status == 429 or (status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"):
        return LoadError(LoadErrorKind.RATE_LIMITED, f"{what}: GitHub rate limit exceeded ({status})")
    if status == 403:
        return LoadError(LoadErrorKind.UNAUTHORIZED, f"{what}: access forbidden (403)")
    return LoadError(LoadErrorKind.UNAVAILABLE, f"{what}: GitHub API error ({status})")


def parse_commit_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """
    Thin async client for the GitHub REST API.

    Each public call opens its own httpx.AsyncClient. Nothing is retried;
    failures surface as LoadError so callers can decide between retrying,
    asking for a credential and backing off.
    """

    def __init__(
        self,
        token: Optional[str] = GITHUB_TOKEN,
        api_url: str = GITHUB_API_URL,
        concurrency: int = LOADER_CONCURRENCY,
        max_load_bytes: int = MAX_LOAD_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.concurrency = concurrency
        self.max_load_bytes = max_load_bytes
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "codeask-repository-loader",
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _get(self, client: httpx.AsyncClient, url: str, what: str, **kwargs) -> httpx.Response:
        try:
            response = await client.get(url, **kwargs)
        except httpx.HTTPError as e:
            raise LoadError(LoadErrorKind.UNAVAILABLE, f"{what}: {type(e).__name__}: {e}") from e
        error = error_for_response(response, what)
        if error:
            raise error
        return response

    async def resolve_default_branch(self, client: httpx.AsyncClient, owner: str, repo: str) -> str:
        response = await self._get(client, f"/repos/{owner}/{repo}", f"Repository {owner}/{repo}")
        return response.json().get("default_branch") or "main"

    async def _fetch_file(
        self,
        client: httpx.AsyncClient,
        semaphore: asyncio.Semaphore,
        owner: str,
        repo: str,
        ref: str,
        path: str,
    ) -> Optional[Document]:
        async with semaphore:
            try:
                response = await self._get(
                    client,
                    f"/repos/{owner}/{repo}/contents/{quote(path)}",
                    f"File {path}",
                    params={"ref": ref},
                    headers={"Accept": "application/vnd.github.raw"},
                )
            except LoadError as e:
                if e.kind == LoadErrorKind.NOT_FOUND:
                    log(f"⚠️  Skipping {path}: {e}")
                    return None
                raise

        try:
            content = response.content.decode("utf-8")
        except UnicodeDecodeError:
            # Not text; binary files never reach the pipeline
            return None
        return Document(path=path, content=content)

    async def load_repository(self, github_url: str, ref: Optional[str] = None) -> List[Document]:
        """
        Load every non-ignored text file of a repository.

        Args:
            github_url: Repository URL (https://github.com/owner/repo)
            ref: Branch, tag or commit; the default branch when omitted

        Returns:
            Documents sorted by path

        Raises:
            LoadError: repository not found, unauthorized, rate-limited or unreachable
        """
        owner, repo = parse_github_url(github_url)

        async with self._client() as client:
            if not ref:
                ref = await self.resolve_default_branch(client, owner, repo)

            response = await self._get(
                client,
                f"/repos/{owner}/{repo}/git/trees/{quote(ref, safe='')}",
                f"Tree {owner}/{repo}@{ref}",
                params={"recursive": "1"},
            )
            tree = response.json()
            if tree.get("truncated"):
                log(f"⚠️  Tree listing for {owner}/{repo}@{ref} was truncated by GitHub")

            entries = [
                entry for entry in tree.get("tree", [])
                if entry.get("type") == "blob"
                and not is_ignored_path(entry["path"])
                and entry.get("size", 0) <= self.max_load_bytes
            ]
            log(f"📂 {owner}/{repo}@{ref}: fetching {len(entries)} files")

            semaphore = asyncio.Semaphore(self.concurrency)
            outcomes = await settle_all(
                self._fetch_file(client, semaphore, owner, repo, ref, entry["path"])
                for entry in entries
            )

        documents = []
        for outcome in outcomes:
            if not outcome.ok:
                if isinstance(outcome.error, LoadError):
                    raise outcome.error
                raise LoadError(LoadErrorKind.UNAVAILABLE, f"Failed to load file: {outcome.error}")
            if outcome.value is not None:
                documents.append(outcome.value)

        documents.sort(key=lambda doc: doc.path)
        log(f"✅ Loaded {len(documents)} files from repository: {github_url}")
        return documents

    async def list_commits(self, github_url: str, limit: int = COMMIT_FETCH_LIMIT) -> List[CommitData]:
        """Latest commits, newest first (commits without a date sort last)."""
        owner, repo = parse_github_url(github_url)
        async with self._client() as client:
            response = await self._get(
                client,
                f"/repos/{owner}/{repo}/commits",
                f"Commits for {owner}/{repo}",
                params={"per_page": limit},
            )

        commits = []
        for item in response.json():
            commit = item.get("commit") or {}
            author = commit.get("author") or {}
            commits.append(CommitData(
                commit_hash=item["sha"],
                commit_message=commit.get("message", ""),
                commit_author_name=author.get("name"),
                commit_author_avatar=(item.get("author") or {}).get("avatar_url"),
                commit_date=parse_commit_date(author.get("date")),
            ))

        dated = sorted((c for c in commits if c.commit_date), key=lambda c: c.commit_date, reverse=True)
        return dated + [c for c in commits if not c.commit_date]

    async def fetch_commit_diff(self, github_url: str, commit_hash: str) -> str:
        """Structured diff text for one commit: message, stats, files and sample patches."""
        owner, repo = parse_github_url(github_url)
        async with self._client() as client:
            response = await self._get(
                client,
                f"/repos/{owner}/{repo}/commits/{commit_hash}",
                f"Commit {commit_hash[:7]}",
            )

        data = response.json()
        commit = data.get("commit") or {}
        author = commit.get("author") or {}
        stats = data.get("stats") or {}
        files = data.get("files") or []

        file_lines = "\n".join(
            f"- {f.get('filename')} ({f.get('status')}) +{f.get('additions', 0)} -{f.get('deletions', 0)}"
            for f in files
        )
        samples = "\n".join(
            f"\n--- {f.get('filename')} ---\n{f['patch'][:1000]}"
            for f in files[:3] if f.get("patch")
        )

        return f"""COMMIT: {commit_hash[:7]}
MESSAGE: {commit.get('message', '')}
AUTHOR: {author.get('name') or 'Unknown'}
DATE: {author.get('date') or ''}
STATS: +{stats.get('additions', 0)} -{stats.get('deletions', 0)} ({len(files)} files)

FILES CHANGED:
{file_lines}

SAMPLE CHANGES:
{samples}""".strip()


def repository_stats(documents: List[Document]) -> Dict:
    """Totals, per-extension counts and the largest file of a loaded repository."""
    stats = {
        "total_files": len(documents),
        "total_lines": 0,
        "total_characters": 0,
        "file_types": {},
        "largest_file": {"path": "", "size": 0},
    }

    for doc in documents:
        stats["total_lines"] += doc.line_count
        stats["total_characters"] += len(doc.content)

        extension = doc.extension or "unknown"
        stats["file_types"][extension] = stats["file_types"].get(extension, 0) + 1

        if len(doc.content) > stats["largest_file"]["size"]:
            stats["largest_file"] = {"path": doc.path, "size": len(doc.content)}

    return stats
