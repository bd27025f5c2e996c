#!/usr/bin/env python3
"""
Codeask Command-line Client
Registers repositories, triggers indexing, asks questions and polls commits
on a remote Codeask server.

Usage:
    python codeask-cli.py --server http://localhost:8000 create my-app https://github.com/owner/repo
    python codeask-cli.py --server http://localhost:8000 index <project-id>
    python codeask-cli.py --server http://localhost:8000 ask <project-id> "Where is auth handled?"
"""
import os
import sys
import argparse
from datetime import datetime

import requests


def stamp() -> str:
    return datetime.now().strftime('%H:%M:%S')


class CodeaskClient:
    """Minimal HTTP client for the Codeask API."""

    def __init__(self, server_url: str, api_key: str = "", github_token: str = ""):
        self.server_url = server_url.rstrip('/')
        self.api_key = api_key
        self.github_token = github_token

    def _headers(self) -> dict:
        headers = {}
        if self.api_key:
            headers['X-API-Key'] = self.api_key
        if self.github_token:
            headers['X-GitHub-Token'] = self.github_token
        return headers

    def _request(self, method: str, path: str, timeout: float = 30, **kwargs) -> requests.Response:
        return requests.request(
            method,
            f"{self.server_url}{path}",
            headers=self._headers(),
            timeout=timeout,
            **kwargs
        )

    def status(self) -> requests.Response:
        return self._request('GET', '/api/status', timeout=5)

    def create_project(self, name: str, github_url: str) -> requests.Response:
        return self._request('POST', '/api/projects', json={'name': name, 'github_url': github_url})

    def index(self, project_id: str, skip_existing: bool, ref: str = None) -> requests.Response:
        payload = {'skip_existing': skip_existing}
        if ref:
            payload['ref'] = ref
        # Large repositories take a while to summarize
        return self._request('POST', f'/api/projects/{project_id}/index', json=payload, timeout=1800)

    def ask(self, project_id: str, question: str, top_k: int) -> requests.Response:
        return self._request(
            'POST',
            f'/api/projects/{project_id}/query',
            json={'question': question, 'top_k': top_k},
            timeout=300
        )

    def poll_commits(self, project_id: str) -> requests.Response:
        return self._request('POST', f'/api/projects/{project_id}/commits/poll', timeout=600)


def report_error(response: requests.Response):
    if response.status_code == 401:
        print(f"[{stamp()}] Auth failed: Check API key")
        return
    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    print(f"[{stamp()}] Error ({response.status_code}): {detail}")


def cmd_status(client: CodeaskClient, args) -> bool:
    response = client.status()
    if response.status_code != 200:
        report_error(response)
        return False
    data = response.json()
    print(f"Server connected: {data['project_count']} projects, {data['file_count']} indexed files, "
          f"{data['question_count']} questions, {data['commit_count']} commits")
    return True


def cmd_create(client: CodeaskClient, args) -> bool:
    response = client.create_project(args.name, args.github_url)
    if response.status_code != 200:
        report_error(response)
        return False
    project = response.json()
    print(f"[{stamp()}] Project created: {project['name']} ({project['id']})")
    return True


def cmd_index(client: CodeaskClient, args) -> bool:
    print(f"[{stamp()}] Indexing project {args.project_id}...")
    response = client.index(args.project_id, args.skip_existing, args.ref)
    result = response.json()
    if response.status_code != 200 and 'processed_count' not in result:
        report_error(response)
        return False

    if not result.get('success'):
        print(f"[{stamp()}] Indexing failed ({result.get('error_kind')}):")
    else:
        print(f"[{stamp()}] {result['processed_count']} processed, {result['skipped_count']} skipped, "
              f"{len(result['errors'])} errors")
    for error in result.get('errors', []):
        print(f"  - {error}")
    return bool(result.get('success'))


def cmd_ask(client: CodeaskClient, args) -> bool:
    response = client.ask(args.project_id, args.question, args.top_k)
    if response.status_code != 200:
        report_error(response)
        return False
    result = response.json()
    print(result['answer'])
    if result['sources']:
        print()
        print("Sources:")
        for source in result['sources']:
            print(f"  {source['file_name']} (similarity: {source['similarity']:.3f})")
    return bool(result.get('success'))


def cmd_poll(client: CodeaskClient, args) -> bool:
    response = client.poll_commits(args.project_id)
    if response.status_code != 200:
        report_error(response)
        return False
    result = response.json()
    print(f"[{stamp()}] {result['processed']} new commits out of {result['total']}")
    for commit in result['commits']:
        print(f"  {commit['commit_hash'][:7]} {commit['commit_message'].splitlines()[0] if commit['commit_message'] else ''}")
        if commit.get('summary'):
            print(f"    {commit['summary']}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Talk to a Codeask server")
    parser.add_argument("--server", "-s", required=True, help="Server URL (e.g., http://localhost:8000)")
    parser.add_argument("--api-key", "-k", default=os.getenv("CODEASK_API_KEY", ""), help="API key for authentication")
    parser.add_argument("--github-token", default=os.getenv("GITHUB_TOKEN", ""), help="GitHub token for private repositories")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show server statistics")

    create = subparsers.add_parser("create", help="Register a GitHub repository")
    create.add_argument("name")
    create.add_argument("github_url")

    index = subparsers.add_parser("index", help="Index a project's repository")
    index.add_argument("project_id")
    index.add_argument("--skip-existing", action="store_true", help="Skip files already indexed with the same content")
    index.add_argument("--ref", default=None, help="Branch, tag or commit (default branch when omitted)")

    ask = subparsers.add_parser("ask", help="Ask a question about a project")
    ask.add_argument("project_id")
    ask.add_argument("question")
    ask.add_argument("--top-k", type=int, default=5, help="Files retrieved as context (1-20, default: 5)")

    poll = subparsers.add_parser("poll", help="Poll and summarize new commits")
    poll.add_argument("project_id")

    args = parser.parse_args()

    client = CodeaskClient(args.server, api_key=args.api_key, github_token=args.github_token)
    commands = {
        "status": cmd_status,
        "create": cmd_create,
        "index": cmd_index,
        "ask": cmd_ask,
        "poll": cmd_poll,
    }

    try:
        ok = commands[args.command](client, args)
    except requests.exceptions.ConnectionError:
        print(f"Cannot connect to server at {args.server}")
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
