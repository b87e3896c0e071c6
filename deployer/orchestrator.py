import logging
import time
from typing import Optional

from .errors import InvalidRequest, NotFound, ProviderFailure
from .gh_api import GitHubClient
from .llm import ContentGenerator, OpenAITextClient
from .models import (
    RemoteFile,
    RoundOutcome,
    RoundResult,
    State,
    TaskRequest,
    pages_url_for,
    repo_url_for,
)
from .notifier import DeferredNotifier
from .repos import RepositoryManager
from .settings import Settings
from .sync import FileSynchronizer

logger = logging.getLogger(__name__)

HOMEPAGE_PATH = "index.html"
README_PATH = "README.md"
LICENSE_PATH = "LICENSE"

MIT_LICENSE = """MIT License

Copyright (c) %YEAR% %AUTHOR%

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""


def render_license(author: str) -> str:
    return MIT_LICENSE.replace("%YEAR%", time.strftime("%Y")).replace("%AUTHOR%", author)


def render_readme(task: str, brief: Optional[str] = None) -> str:
    text = f"# {task}\n\nThis repository was auto-generated.\n"
    if brief:
        text += f"\n## Brief\n\n{brief}\n"
    return text


def append_revision(readme: str, round_no: int, brief: str) -> str:
    return f"{readme.rstrip()}\n\n## Round {round_no}\n\n{brief}\n"


class RoundOrchestrator:
    """Runs one round of a task against the remote repository.

    Round 1 creates the repository, pushes the page, readme and license and
    turns on Pages. Round 2 rewrites the page in place from the copy currently
    on GitHub. Per-round state lives in the returned RoundOutcome, so one
    orchestrator serves any number of concurrent tasks.
    """

    def __init__(self, generator: ContentGenerator, repos: RepositoryManager,
                 files: FileSynchronizer, notifier: DeferredNotifier, owner: str,
                 branch: str = "main", pages_path: str = "/"):
        self.generator = generator
        self.repos = repos
        self.files = files
        self.notifier = notifier
        self.owner = owner
        self.branch = branch
        self.pages_path = pages_path

    def run(self, req: TaskRequest) -> RoundOutcome:
        outcome = RoundOutcome(task=req.task, round=req.round)
        try:
            if req.round == 1:
                result = self._create(req, outcome)
            elif req.round == 2:
                result = self._revise(req, outcome)
            else:
                raise InvalidRequest(f"unsupported round {req.round}")
        except Exception as e:
            failed_in = outcome.state
            outcome.state = State.FAILED
            outcome.error = f"{type(e).__name__}: {e}"
            logger.exception("task=%s round=%s failed while %s", req.task, req.round, failed_in.value)
            return outcome

        outcome.result = result
        self._advance(outcome, State.COMPLETED)
        if req.evaluation_url:
            self.notifier.schedule(str(req.evaluation_url), result)
        else:
            logger.warning("task=%s round=%s has no evaluation_url; nothing to notify", req.task, req.round)
        return outcome

    def _advance(self, outcome: RoundOutcome, state: State) -> None:
        logger.info("task=%s round=%s: %s -> %s", outcome.task, outcome.round, outcome.state.value, state.value)
        outcome.state = state

    # ---------- round 1 ----------
    def _create(self, req: TaskRequest, outcome: RoundOutcome) -> RoundResult:
        self._advance(outcome, State.GENERATING)
        page = self.generator.generate(req.brief, checks=req.checks)

        self._advance(outcome, State.PUBLISHING)
        repo = self.repos.ensure_repository(req.task, description=f"Auto-generated app for task: {req.task}")
        home = self.files.put(repo.owner, repo.name, HOMEPAGE_PATH,
                              "feat: Initial commit with index.html", page)
        self._put_auxiliary(repo.owner, repo.name, README_PATH, "docs: Add README",
                            render_readme(req.task, req.brief))
        self._put_auxiliary(repo.owner, repo.name, LICENSE_PATH, "feat: Add MIT License",
                            render_license(repo.owner))

        pages_url = self.repos.enable_hosting(repo.name, self.branch, self.pages_path)
        self._advance(outcome, State.HOSTING_CONFIGURED)

        return RoundResult(
            email=req.email, task=req.task, round=req.round, nonce=req.nonce,
            repo_url=repo.web_url, commit_sha=home.commit_sha, pages_url=pages_url,
        )

    def _put_auxiliary(self, owner: str, name: str, path: str, message: str, content: str) -> None:
        try:
            self.files.put(owner, name, path, message, content)
        except ProviderFailure as e:
            logger.warning("skipping %s for %s/%s: %s", path, owner, name, e)

    # ---------- round 2 ----------
    def _revise(self, req: TaskRequest, outcome: RoundOutcome) -> RoundResult:
        # always a fresh read; the repo may have changed since round 1
        current = self.files.get(self.owner, req.task, HOMEPAGE_PATH)
        self._advance(outcome, State.GENERATING)
        page = self.generator.generate(req.brief, prior_content=current.content, checks=req.checks)

        self._advance(outcome, State.PUBLISHING)
        home = self.files.put(self.owner, req.task, HOMEPAGE_PATH,
                              f"feat: Round {req.round} update to index.html", page,
                              version_token=current.version_token)
        self._append_readme(req)

        return RoundResult(
            email=req.email, task=req.task, round=req.round, nonce=req.nonce,
            repo_url=repo_url_for(self.owner, req.task),
            commit_sha=home.commit_sha,
            pages_url=pages_url_for(self.owner, req.task),
        )

    def _append_readme(self, req: TaskRequest) -> None:
        try:
            try:
                readme = self.files.get(self.owner, req.task, README_PATH)
            except NotFound:
                readme = RemoteFile(path=README_PATH, content=render_readme(req.task))
            self.files.put(self.owner, req.task, README_PATH, f"docs: Round {req.round} notes",
                           append_revision(readme.content, req.round, req.brief),
                           version_token=readme.version_token)
        except ProviderFailure as e:
            logger.warning("skipping README update for %s/%s: %s", self.owner, req.task, e)


def build_orchestrator(cfg: Settings) -> RoundOrchestrator:
    client = GitHubClient(cfg)
    return RoundOrchestrator(
        generator=ContentGenerator(OpenAITextClient(cfg)),
        repos=RepositoryManager(client, cfg.GITHUB_USERNAME, adopt_existing=cfg.ADOPT_EXISTING_REPO),
        files=FileSynchronizer(client),
        notifier=DeferredNotifier(delay=cfg.NOTIFY_DELAY_SECONDS, timeout=cfg.HTTP_TIMEOUT_SECONDS,
                                  dedup_size=cfg.NOTIFY_DEDUP_SIZE),
        owner=cfg.GITHUB_USERNAME,
        branch=cfg.DEFAULT_BRANCH,
        pages_path=cfg.PAGES_BUILD_PATH,
    )
