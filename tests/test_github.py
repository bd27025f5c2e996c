import httpx
import pytest

from core.errors import LoadError, LoadErrorKind
from services.github import GitHubClient, is_ignored_path, parse_github_url, repository_stats
from models.documents import Document

REPO = "https://github.com/acme/widgets"

FILES = {
    "README.md": b"# Widgets",
    "src/a.ts": b"export const a = 1",
    "src/binary.dat": b"\xff\xfe\x00\x81",
    "src/gone.ts": None,
}


def github_handler(requests, repo_status=200, tree=None, headers=None):
    tree = tree if tree is not None else [
        {"path": "src", "type": "tree"},
        {"path": "src/a.ts", "type": "blob", "size": 18},
        {"path": "README.md", "type": "blob", "size": 9},
        {"path": "src/binary.dat", "type": "blob", "size": 4},
        {"path": "src/gone.ts", "type": "blob", "size": 10},
        {"path": "node_modules/react/index.js", "type": "blob", "size": 10},
        {"path": "package-lock.json", "type": "blob", "size": 10},
        {"path": "assets/logo.png", "type": "blob", "size": 10},
        {"path": "src/huge.ts", "type": "blob", "size": 10_000_000},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path == "/repos/acme/widgets":
            if repo_status != 200:
                return httpx.Response(repo_status, headers=headers or {}, json={"message": "error"})
            return httpx.Response(200, json={"default_branch": "develop"})
        if path.startswith("/repos/acme/widgets/git/trees/"):
            return httpx.Response(200, json={"tree": tree, "truncated": False})
        if path.startswith("/repos/acme/widgets/contents/"):
            file_path = path[len("/repos/acme/widgets/contents/"):]
            content = FILES.get(file_path)
            if content is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, content=content)
        return httpx.Response(500)

    return handler


def client_for(handler, **kwargs):
    return GitHubClient(token=kwargs.pop("token", None), transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.parametrize("url,expected", [
    ("https://github.com/acme/widgets", ("acme", "widgets")),
    ("https://github.com/acme/widgets.git", ("acme", "widgets")),
    ("https://github.com/acme/widgets/tree/main/src", ("acme", "widgets")),
    ("  https://www.github.com/acme/widgets/  ", ("acme", "widgets")),
])
def test_parse_github_url(url, expected):
    assert parse_github_url(url) == expected


@pytest.mark.parametrize("url", ["https://gitlab.com/acme/widgets", "https://github.com/acme", "not a url"])
def test_parse_github_url_rejects(url):
    with pytest.raises(LoadError) as excinfo:
        parse_github_url(url)
    assert excinfo.value.kind == LoadErrorKind.NOT_FOUND


@pytest.mark.parametrize("path,ignored", [
    ("node_modules/x/index.js", True),
    ("packages/app/dist/main.js", True),
    ("src/__tests__/a.test.ts", True),
    ("coverage/lcov.info", True),
    ("yarn.lock", True),
    ("debug.log", True),
    ("static/app.min.js", True),
    ("static/app.js.map", True),
    ("img/logo.PNG", True),
    ("src/index.ts", False),
    ("src/testing.ts", False),
    ("Dockerfile", False),
])
def test_is_ignored_path(path, ignored):
    assert is_ignored_path(path) == ignored


@pytest.mark.asyncio
async def test_load_repository_uses_default_branch_and_filters():
    requests = []
    client = client_for(github_handler(requests))

    documents = await client.load_repository(REPO)

    assert [doc.path for doc in documents] == ["README.md", "src/a.ts"]
    assert documents[1].content == "export const a = 1"

    tree_request = next(r for r in requests if "/git/trees/" in r.url.path)
    assert tree_request.url.path.endswith("/develop")
    assert tree_request.url.params["recursive"] == "1"

    fetched = {r.url.path for r in requests if "/contents/" in r.url.path}
    assert "/repos/acme/widgets/contents/node_modules/react/index.js" not in fetched
    assert "/repos/acme/widgets/contents/src/huge.ts" not in fetched
    assert all(r.url.params.get("ref") == "develop" for r in requests if "/contents/" in r.url.path)


@pytest.mark.asyncio
async def test_explicit_ref_skips_branch_lookup():
    requests = []
    client = client_for(github_handler(requests))

    await client.load_repository(REPO, ref="v1.2.0")

    assert all(r.url.path != "/repos/acme/widgets" for r in requests)
    assert any(r.url.path.endswith("/git/trees/v1.2.0") for r in requests)


@pytest.mark.asyncio
async def test_token_is_sent():
    requests = []
    client = client_for(github_handler(requests), token="ghp_secret")

    await client.load_repository(REPO)

    assert requests[0].headers["Authorization"] == "token ghp_secret"


@pytest.mark.asyncio
@pytest.mark.parametrize("status,headers,kind", [
    (404, None, LoadErrorKind.NOT_FOUND),
    (401, None, LoadErrorKind.UNAUTHORIZED),
    (403, {"X-RateLimit-Remaining": "0"}, LoadErrorKind.RATE_LIMITED),
    (429, None, LoadErrorKind.RATE_LIMITED),
    (403, None, LoadErrorKind.UNAUTHORIZED),
    (502, None, LoadErrorKind.UNAVAILABLE),
])
async def test_load_errors_are_classified(status, headers, kind):
    client = client_for(github_handler([], repo_status=status, headers=headers))

    with pytest.raises(LoadError) as excinfo:
        await client.load_repository(REPO)

    assert excinfo.value.kind == kind


@pytest.mark.asyncio
async def test_network_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LoadError) as excinfo:
        await client_for(handler).load_repository(REPO)

    assert excinfo.value.kind == LoadErrorKind.UNAVAILABLE


@pytest.mark.asyncio
async def test_list_commits_newest_first():
    payload = [
        {"sha": "a" * 40, "commit": {"message": "old", "author": {"name": "Ada", "date": "2024-01-01T10:00:00Z"}}},
        {"sha": "b" * 40, "commit": {"message": "undated", "author": {"name": "Bob"}}},
        {
            "sha": "c" * 40,
            "commit": {"message": "new", "author": {"name": "Cy", "date": "2024-03-01T10:00:00Z"}},
            "author": {"avatar_url": "https://avatars.example/cy.png"},
        },
    ]

    def handler(request):
        assert request.url.path == "/repos/acme/widgets/commits"
        assert request.url.params["per_page"] == "15"
        return httpx.Response(200, json=payload)

    commits = await client_for(handler).list_commits(REPO, limit=15)

    assert [c.commit_message for c in commits] == ["new", "old", "undated"]
    assert commits[0].commit_author_avatar == "https://avatars.example/cy.png"
    assert commits[0].commit_date.year == 2024
    assert commits[2].commit_date is None


@pytest.mark.asyncio
async def test_fetch_commit_diff():
    payload = {
        "commit": {"message": "fix: parser", "author": {"name": "Ada", "date": "2024-01-01T10:00:00Z"}},
        "stats": {"additions": 3, "deletions": 1},
        "files": [
            {"filename": "src/parser.py", "status": "modified", "additions": 3, "deletions": 1, "patch": "@@ -1 +1 @@"},
            {"filename": "logo.png", "status": "added", "additions": 0, "deletions": 0},
        ],
    }

    def handler(request):
        return httpx.Response(200, json=payload)

    diff = await client_for(handler).fetch_commit_diff(REPO, "abcdef1234567")

    assert diff.startswith("COMMIT: abcdef1")
    assert "MESSAGE: fix: parser" in diff
    assert "STATS: +3 -1 (2 files)" in diff
    assert "- src/parser.py (modified) +3 -1" in diff
    assert "--- src/parser.py ---\n@@ -1 +1 @@" in diff


def test_repository_stats():
    stats = repository_stats([
        Document(path="a.py", content="a\nb"),
        Document(path="b.py", content="long content"),
        Document(path="Makefile", content="all:"),
    ])

    assert stats["total_files"] == 3
    assert stats["total_lines"] == 4
    assert stats["file_types"] == {"py": 2, "unknown": 1}
    assert stats["largest_file"] == {"path": "b.py", "size": 12}
