import logging

from .errors import AlreadyExists, ProviderFailure
from .models import RepositoryDescriptor, pages_url_for, repo_url_for

logger = logging.getLogger(__name__)


class RepositoryManager:
    def __init__(self, client, owner: str, adopt_existing: bool = False):
        self.client = client
        self.owner = owner
        self.adopt_existing = adopt_existing

    def ensure_repository(self, name: str, description: str = "") -> RepositoryDescriptor:
        """Create the task's repository.

        The repository name is the task's only address, so an existing one is a
        fatal collision unless ``adopt_existing`` is set.
        """
        try:
            data = self.client.create_repo(name, description=description)
            logger.info("created repository %s/%s", self.owner, name)
        except AlreadyExists:
            if not self.adopt_existing:
                raise
            logger.warning("repository %s/%s already exists; adopting it", self.owner, name)
            data = self.client.get_repo(self.owner, name)

        # the token's account must be the configured owner; logins ignore case
        login = (data.get("owner") or {}).get("login", "")
        if not self.owner or login.lower() != self.owner.lower():
            raise ProviderFailure(
                f"repository {name} was created under {login!r}, not the configured owner {self.owner!r}"
            )
        return RepositoryDescriptor(
            name=name,
            owner=self.owner,
            web_url=repo_url_for(self.owner, name),
            hosting_url=pages_url_for(self.owner, name),
        )

    def enable_hosting(self, name: str, branch: str, path: str) -> str:
        try:
            self.client.enable_pages(self.owner, name, branch, path)
        except AlreadyExists:
            logger.info("pages already enabled for %s/%s", self.owner, name)
            return pages_url_for(self.owner, name)
        logger.info("enabled pages for %s/%s from %s:%s", self.owner, name, branch, path)
        return pages_url_for(self.owner, name)
