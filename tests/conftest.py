import pytest

from src.servers.remote import create_starlette_app
from src.utils.github.service import RepositoryService
from tests.clients.FakeGithub import FakeGithub, FakeRepo
from tests.clients.GatewayTestClient import GatewayTestClient
from tests.config import README_TEXT, TEST_OWNER, TEST_REPO


@pytest.fixture
def fake_github():
    """A fake GitHub account holding one public and one private repository"""
    github = FakeGithub()
    repo = github.add_repo(
        FakeRepo(TEST_OWNER, TEST_REPO, default_branch="main", description="Sandbox")
    )
    repo.add_file("README.md", README_TEXT)
    repo.add_file("docs/guide.md", "Guide\n")
    repo.add_file("docs/api.md", "API\n")
    github.add_repo(
        FakeRepo(TEST_OWNER, "secret-plans", default_branch="trunk", private=True)
    )
    return github


@pytest.fixture
def sandbox_repo(fake_github):
    return fake_github.repos[f"{TEST_OWNER}/{TEST_REPO}"]


@pytest.fixture
def service(fake_github):
    return RepositoryService(fake_github)


@pytest.fixture
def app(service):
    return create_starlette_app(service, public_base_url=None, keepalive_interval=0.01)


@pytest.fixture
def client(app):
    return GatewayTestClient(app)
