import base64
import binascii
import logging
from typing import Optional

from .errors import MalformedResponse
from .models import RemoteFile

logger = logging.getLogger(__name__)


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(b64: str) -> str:
    # the contents API wraps base64 at 60 columns
    return base64.b64decode("".join(b64.split())).decode("utf-8")


class FileSynchronizer:
    """Reads and writes single files, guarded by the blob SHA GitHub hands out."""

    def __init__(self, client):
        self.client = client

    def get(self, owner: str, repo: str, path: str) -> RemoteFile:
        data = self.client.get_file(owner, repo, path)
        try:
            content = decode_content(data.get("content", ""))
            token = data["sha"]
        except (binascii.Error, UnicodeDecodeError, KeyError, AttributeError) as e:
            raise MalformedResponse(f"cannot read {path} from {owner}/{repo}: {e}") from e
        return RemoteFile(path=path, content=content, version_token=token)

    def put(self, owner: str, repo: str, path: str, message: str, content: str,
            version_token: Optional[str] = None) -> RemoteFile:
        """Create ``path`` (no token) or replace it only if ``version_token`` is still current.

        Raises ConflictFailure when the path already exists on create, or when the
        token is stale on update. Never retries.
        """
        action = "update" if version_token else "create"
        logger.info("%s %s/%s:%s", action, owner, repo, path)
        data = self.client.put_file(
            owner, repo, path, message, encode_content(content), sha=version_token
        )
        try:
            new_token = data["content"]["sha"]
            commit_sha = data["commit"]["sha"]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"put {path} to {owner}/{repo} returned no sha: {e}") from e
        return RemoteFile(path=path, content=content, version_token=new_token, commit_sha=commit_sha)
