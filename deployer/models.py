from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

# GitHub accepts letters, digits, '.', '-' and '_' in repository names
REPO_NAME_PATTERN = r"^[A-Za-z0-9._-]{1,100}$"


class TaskRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    secret: str
    task: str = Field(..., pattern=REPO_NAME_PATTERN)
    round: int = Field(..., ge=1, le=2)
    nonce: str
    brief: str
    checks: List[str] = []
    evaluation_url: Optional[HttpUrl] = None


class RemoteFile(BaseModel):
    path: str
    content: str
    version_token: Optional[str] = None
    commit_sha: Optional[str] = None


class RepositoryDescriptor(BaseModel):
    name: str
    owner: str
    web_url: str
    hosting_url: str


class RoundResult(BaseModel):
    email: str
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str


class State(str, Enum):
    START = "start"
    GENERATING = "generating"
    PUBLISHING = "publishing"
    HOSTING_CONFIGURED = "hosting_configured"
    COMPLETED = "completed"
    FAILED = "failed"


class RoundOutcome(BaseModel):
    task: str
    round: int
    state: State = State.START
    result: Optional[RoundResult] = None
    error: Optional[str] = None


def repo_url_for(owner: str, name: str) -> str:
    return f"https://github.com/{owner}/{name}"


def pages_url_for(owner: str, name: str) -> str:
    return f"https://{owner}.github.io/{name}/"
