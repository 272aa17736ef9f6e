"""
Integration tests for the PoP authentication flow.

The client signs tokens with a private key read from disk, the server
verifies them with the public key loaded from its configured PEM file, and
requests travel through the full ASGI stack.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio

from service_pop_auth.app.keys import generate_rsa_keypair, load_private_key, private_key_to_pem, public_key_to_pem
from service_pop_auth.app.main import PopAuthService
from service_pop_auth.client import PopClient, PopTokenIssuer
from shared.config import get_config

SERVER_URL = "http://testserver/helloworld"


class TestAuthFlow:
    """Integration tests for complete PoP auth flow."""

    @pytest.fixture(scope="class")
    def key_files(self, tmp_path_factory):
        """Write a client key pair the way an operator would provision it."""
        directory = tmp_path_factory.mktemp("keys")
        private_key, public_key = generate_rsa_keypair()
        private_path = directory / "client-private.pem"
        public_path = directory / "client-public.pem"
        private_path.write_bytes(private_key_to_pem(private_key, "password"))
        public_path.write_bytes(public_key_to_pem(public_key))
        return private_path, public_path

    @pytest.fixture
    def service(self, key_files):
        _, public_path = key_files
        config = get_config("pop_auth", 8080, env="test", pop_public_key_path=str(public_path))
        return PopAuthService(config=config)

    @pytest.fixture
    def issuer(self, key_files):
        private_path, _ = key_files
        return PopTokenIssuer(load_private_key(private_path, "password"), subject="Client")

    @pytest_asyncio.fixture
    async def client(self, service, issuer):
        transport = httpx.ASGITransport(app=service.app)
        async with PopClient(SERVER_URL, issuer, transport=transport) as client:
            yield client

    @pytest.mark.asyncio
    async def test_complete_auth_flow(self, client, issuer, service):
        """Fresh token accepted, replay rejected, new token accepted again."""
        token = issuer.issue(nonce="abc123")

        first = await client.call(token)
        assert first.status_code == 200
        assert first.text == "Hello, World!"

        replay = await client.call(token)
        assert replay.status_code == 400
        assert replay.text == "Replay detected!"

        fresh = await client.call()
        assert fresh.status_code == 200
        assert len(service.replay_guard) == 2

    @pytest.mark.asyncio
    async def test_concurrent_replays_accept_exactly_once(self, client, issuer):
        """N simultaneous copies of one token: one 200, N-1 400."""
        token = issuer.issue()
        attempts = 25

        responses = await asyncio.gather(*(client.call(token) for _ in range(attempts)))

        statuses = [response.status_code for response in responses]
        assert statuses.count(200) == 1
        assert statuses.count(400) == attempts - 1
        assert {r.text for r in responses if r.status_code == 400} == {"Replay detected!"}

    @pytest.mark.asyncio
    async def test_concurrent_fresh_tokens_all_accepted(self, client):
        attempts = 25

        responses = await asyncio.gather(*(client.call() for _ in range(attempts)))

        assert all(response.status_code == 200 for response in responses)

    @pytest.mark.asyncio
    async def test_token_from_unknown_client_is_unauthorized(self, client):
        """A key pair the server has never seen cannot authenticate."""
        stranger_key, _ = generate_rsa_keypair()
        token = PopTokenIssuer(stranger_key).issue()

        response = await client.call(token)

        assert response.status_code == 401
        assert response.text == "Invalid PoP token"

    @pytest.mark.asyncio
    async def test_wrong_scheme_is_unauthorized(self, service):
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport) as raw_client:
            response = await raw_client.get(SERVER_URL, headers={"Authorization": "Basic xyz"})

        assert response.status_code == 401
        assert response.text == ""
