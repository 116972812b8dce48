# tests/unit/app/test_github.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import json

import httpx
import pytest

from gistflow.app.github import BrowserAuthorizationPrompter, GitHubGistStore, GitHubIdentityProvider
from gistflow.config import Settings
from gistflow.core.errors import AuthExchangeError, DocumentFetchError, DocumentSaveError, IdentityLookupError

SETTINGS = Settings(api_url="https://api.github.test", auth_exchange_url="https://exchange.test/api/GistPost")


def client_for(handler, requests):
    def record(request):
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(record))


@pytest.fixture
def requests():
    return []


@pytest.mark.asyncio
async def test_exchange_code_returns_access_token(requests):
    client = client_for(lambda r: httpx.Response(200, json={"access_token": "tok"}), requests)
    async with GitHubIdentityProvider(SETTINGS, client=client) as provider:
        assert await provider.exchange_code("abc") == "tok"

    assert str(requests[0].url) == "https://exchange.test/api/GistPost?code=abc"


@pytest.mark.asyncio
async def test_exchange_code_rejected(requests):
    client = client_for(lambda r: httpx.Response(401), requests)
    provider = GitHubIdentityProvider(SETTINGS, client=client)
    with pytest.raises(AuthExchangeError, match="unauthorized"):
        await provider.exchange_code("abc")


@pytest.mark.asyncio
async def test_exchange_code_expired(requests):
    client = client_for(lambda r: httpx.Response(200, json={"error": "bad_verification_code"}), requests)
    provider = GitHubIdentityProvider(SETTINGS, client=client)
    with pytest.raises(AuthExchangeError, match="expired code"):
        await provider.exchange_code("abc")


@pytest.mark.asyncio
async def test_exchange_code_network_failure(requests):
    def fail(request):
        raise httpx.ConnectError("down", request=request)

    provider = GitHubIdentityProvider(SETTINGS, client=client_for(fail, requests))
    with pytest.raises(AuthExchangeError):
        await provider.exchange_code("abc")


@pytest.mark.asyncio
async def test_get_user_sends_token(requests):
    client = client_for(lambda r: httpx.Response(200, json={"login": "octocat"}), requests)
    provider = GitHubIdentityProvider(SETTINGS, client=client)

    assert await provider.get_user("tok") == {"login": "octocat"}
    assert requests[0].url.path == "/user"
    assert requests[0].headers["Authorization"] == "token tok"


@pytest.mark.asyncio
async def test_get_user_failure(requests):
    provider = GitHubIdentityProvider(SETTINGS, client=client_for(lambda r: httpx.Response(401), requests))
    with pytest.raises(IdentityLookupError, match="Unable to get user"):
        await provider.get_user("tok")


@pytest.mark.asyncio
async def test_fetch_document(requests):
    body = {"id": "abc123", "files": {"machine.js": {"content": "Machine({})"}}}
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: httpx.Response(200, json=body), requests))

    assert await store.fetch_document("abc123") == "Machine({})"
    assert requests[0].url.path == "/gists/abc123"


@pytest.mark.asyncio
async def test_fetch_document_not_found(requests):
    response = httpx.Response(404, json={"message": "Not Found"})
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: response, requests))
    with pytest.raises(DocumentFetchError, match="Not Found"):
        await store.fetch_document("abc123")


@pytest.mark.asyncio
async def test_fetch_document_without_machine_file(requests):
    body = {"id": "abc123", "files": {"other.js": {"content": "x"}}}
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: httpx.Response(200, json=body), requests))
    with pytest.raises(DocumentFetchError, match="has no machine.js"):
        await store.fetch_document("abc123")


@pytest.mark.asyncio
async def test_save_without_id_posts_new_gist(requests):
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: httpx.Response(201, json={"id": "g1"}), requests))

    assert await store.save_document("tok", "X") == "g1"
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/gists"
    assert request.headers["Authorization"] == "token tok"
    assert json.loads(request.content) == {"description": "XState test", "files": {"machine.js": {"content": "X"}}}


@pytest.mark.asyncio
async def test_save_with_id_patches_gist(requests):
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: httpx.Response(200, json={"id": "g1"}), requests))

    assert await store.save_document("tok", "X", document_id="g1") == "g1"
    assert requests[0].method == "PATCH"
    assert requests[0].url.path == "/gists/g1"


@pytest.mark.asyncio
async def test_patch_failure_carries_remote_message(requests):
    response = httpx.Response(403, json={"message": "Bad credentials"})
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: response, requests))
    with pytest.raises(DocumentSaveError, match="Bad credentials"):
        await store.save_document("tok", "X", document_id="g1")


@pytest.mark.asyncio
async def test_post_failure_is_generic(requests):
    response = httpx.Response(422, json={"message": "Validation Failed"})
    store = GitHubGistStore(SETTINGS, client=client_for(lambda r: response, requests))
    with pytest.raises(DocumentSaveError, match="Unable to post gist"):
        await store.save_document("tok", "X")


def test_prompter_opens_authorize_url():
    opened = []
    prompter = BrowserAuthorizationPrompter(SETTINGS, opener=opened.append)
    prompter.prompt()
    assert opened == ["https://github.com/login/oauth/authorize?client_id=39c1ec91c4ed507f6e4c&scope=gist"]
