import base64
import hashlib
from concurrent.futures import Future

import pytest

from deployer.errors import AlreadyExists, ConflictFailure, NotFound
from deployer.llm import ContentGenerator
from deployer.models import TaskRequest
from deployer.notifier import DeferredNotifier
from deployer.orchestrator import RoundOrchestrator
from deployer.repos import RepositoryManager
from deployer.sync import FileSynchronizer

OWNER = "octo"
PAGE = "<!DOCTYPE html>\n<html><head><title>Calc</title></head><body>calc</body></html>"
PAGE_V2 = "<!DOCTYPE html>\n<html><head><title>Calc</title></head><body class='dark'>calc</body></html>"


class FakeGitHub:
    """In-memory stand-in for GitHubClient with the same sha/conflict rules as the REST API."""

    def __init__(self, owner=OWNER):
        self.owner = owner
        self.repos = {}
        self.calls = []
        self.failures = {}
        self.bad_put_bodies = set()
        self._commits = 0

    def _maybe_fail(self, op, key):
        exc = self.failures.get((op, key))
        if exc is not None:
            raise exc

    def _repo(self, name):
        if name not in self.repos:
            raise NotFound(f"repository {name} not found", status_code=404)
        return self.repos[name]

    def create_repo(self, name, description=""):
        self.calls.append(("create_repo", name))
        self._maybe_fail("create_repo", name)
        if name in self.repos:
            raise AlreadyExists(f"repository {name} already exists", status_code=422)
        self.repos[name] = {"files": {}, "pages": None, "description": description}
        return self.get_repo(self.owner, name, record=False)

    def get_repo(self, owner, name, record=True):
        if record:
            self.calls.append(("get_repo", name))
        self._repo(name)
        return {
            "name": name,
            "owner": {"login": self.owner},
            "html_url": f"https://github.com/{self.owner}/{name}",
        }

    def get_file(self, owner, repo, path):
        self.calls.append(("get_file", repo, path))
        self._maybe_fail("get_file", path)
        files = self._repo(repo)["files"]
        if path not in files:
            raise NotFound(f"{path} not found", status_code=404)
        b64, sha = files[path]
        return {"path": path, "sha": sha, "encoding": "base64", "content": b64}

    def put_file(self, owner, repo, path, message, content_b64, sha=None):
        self.calls.append(("put_file", repo, path, sha))
        self._maybe_fail("put_file", path)
        files = self._repo(repo)["files"]
        current = files.get(path)
        if sha is None and current is not None:
            raise ConflictFailure('Invalid request. "sha" was not supplied.', status_code=422)
        if sha is not None and (current is None or current[1] != sha):
            raise ConflictFailure(f"{path} does not match {sha}", status_code=409)
        self._commits += 1
        blob = hashlib.sha1(f"{path}:{self._commits}:{content_b64}".encode()).hexdigest()
        commit = hashlib.sha1(f"commit:{self._commits}".encode()).hexdigest()
        files[path] = (content_b64, blob)
        if path in self.bad_put_bodies:
            return {"content": None}
        return {"content": {"path": path, "sha": blob}, "commit": {"sha": commit}}

    def enable_pages(self, owner, repo, branch, path):
        self.calls.append(("enable_pages", repo, branch, path))
        self._maybe_fail("enable_pages", repo)
        r = self._repo(repo)
        if r["pages"] is not None:
            raise AlreadyExists("GitHub Pages is already enabled.", status_code=409)
        r["pages"] = (branch, path)
        return {"html_url": f"https://{self.owner}.github.io/{repo}/"}

    # helpers for tests
    def text(self, repo, path):
        return base64.b64decode(self.repos[repo]["files"][path][0]).decode("utf-8")

    def edit(self, repo, path, text):
        """Simulate someone changing a file outside the deployer."""
        self._commits += 1
        b64 = base64.b64encode(text.encode("utf-8")).decode("ascii")
        blob = hashlib.sha1(f"{path}:{self._commits}:{b64}".encode()).hexdigest()
        self.repos[repo]["files"][path] = (b64, blob)

    def edit_raw(self, repo, path, raw):
        """Store bytes that are not valid UTF-8."""
        self._commits += 1
        b64 = base64.b64encode(raw).decode("ascii")
        self.repos[repo]["files"][path] = (b64, hashlib.sha1(raw + str(self._commits).encode()).hexdigest())

    def writes(self):
        return [c for c in self.calls if c[0] == "put_file"]


class StubTextClient:
    def __init__(self, *replies, on_call=None):
        self.replies = list(replies) or [PAGE]
        self.prompts = []
        self.on_call = on_call

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.on_call is not None:
            self.on_call()
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


class ManualTimer:
    """threading.Timer look-alike that only runs when the test says so."""

    created = None

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.daemon = False
        self.started = False
        ManualTimer.created.append(self)

    def start(self):
        self.started = True

    def fire(self):
        self.function(*self.args)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json body")
        return self._body


class RecordingPost:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def __call__(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.status_code, text="ok")


class InlineExecutor:
    """Runs submitted work immediately so request tests stay deterministic."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args))
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def text_client():
    return StubTextClient(PAGE, PAGE_V2)


@pytest.fixture
def timers():
    ManualTimer.created = []
    yield ManualTimer.created
    ManualTimer.created = None


@pytest.fixture
def post():
    return RecordingPost()


@pytest.fixture
def notifier(timers, post):
    return DeferredNotifier(delay=15, post=post, timer_cls=ManualTimer)


@pytest.fixture
def orchestrator(github, text_client, notifier):
    return RoundOrchestrator(
        generator=ContentGenerator(text_client),
        repos=RepositoryManager(github, OWNER),
        files=FileSynchronizer(github),
        notifier=notifier,
        owner=OWNER,
    )


def make_request(**overrides):
    data = {
        "email": "student@example.com",
        "secret": "s3cret",
        "task": "demo-1",
        "round": 1,
        "nonce": "n-123",
        "brief": "a calculator page",
        "checks": ["Page has a title"],
        "evaluation_url": "https://eval.example.com/notify",
    }
    data.update(overrides)
    return TaskRequest(**data)
