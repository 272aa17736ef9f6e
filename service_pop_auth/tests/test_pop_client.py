"""
Tests for the PoP token producer, HTTP client and CLI.
"""

import argparse

import httpx
import jwt
import pytest

from service_pop_auth.app.keys import StaticKeyProvider
from service_pop_auth.app.main import create_app
from service_pop_auth.app.validation import TokenVerifier
from service_pop_auth.client import PopClient, PopTokenIssuer, generate_nonce
from service_pop_auth.client import cli
from shared.config import BaseConfig, get_config
from shared.errors import ValidationError
from shared.test_helpers import get_test_keypair


@pytest.fixture
def keypair():
    return get_test_keypair()


@pytest.fixture
def issuer(keypair):
    return PopTokenIssuer(keypair.private_key, subject="Client", ttl_seconds=300)


class TestPopTokenIssuer:
    """Test cases for PopTokenIssuer."""

    def test_issued_token_verifies(self, issuer, keypair):
        """Tokens from the issuer pass server-side verification."""
        result = TokenVerifier("RS256").verify(issuer.issue(), keypair.public_key)

        assert result.valid is True
        assert result.claims.subject == "Client"

    def test_claims_shape(self, issuer):
        claims = issuer.build_claims(nonce="abc123")

        assert claims["sub"] == "Client"
        assert claims["nonce"] == "abc123"
        assert claims["exp"] == claims["iat"] + 300

    def test_no_expiry_without_ttl(self, keypair):
        claims = PopTokenIssuer(keypair.private_key, ttl_seconds=None).build_claims()

        assert "exp" not in claims

    def test_every_token_gets_a_new_nonce(self, issuer):
        first = jwt.decode(issuer.issue(), options={"verify_signature": False})
        second = jwt.decode(issuer.issue(), options={"verify_signature": False})

        assert first["nonce"] != second["nonce"]

    def test_extra_claims_and_key_id(self, keypair):
        token = PopTokenIssuer(keypair.private_key, key_id="clientkey").issue(nonce="n1", scope="hello")

        assert jwt.get_unverified_header(token)["kid"] == "clientkey"
        assert jwt.decode(token, options={"verify_signature": False})["scope"] == "hello"


def test_generate_nonce_is_random():
    nonces = {generate_nonce() for _ in range(100)}

    assert len(nonces) == 100
    assert all(len(nonce) >= 32 for nonce in nonces)


class TestPopClient:
    """Test cases for PopClient."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, issuer, keypair):
        """Each call carries a freshly signed bearer token."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, text="Hello, World!")

        async with PopClient("http://server/helloworld", issuer, transport=httpx.MockTransport(handler)) as client:
            first = await client.call()
            await client.call()

        assert first.text == "Hello, World!"
        assert len(seen) == 2
        assert all(header.startswith("Bearer ") for header in seen)
        assert seen[0] != seen[1]

        verifier = TokenVerifier("RS256")
        assert verifier.verify(seen[0][len("Bearer "):], keypair.public_key).valid is True

    @pytest.mark.asyncio
    async def test_explicit_token_is_sent_verbatim(self, issuer):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(400, text="Replay detected!")

        async with PopClient("http://server/helloworld", issuer, transport=httpx.MockTransport(handler)) as client:
            response = await client.call("abc.def.ghi")

        assert response.status_code == 400
        assert seen == ["Bearer abc.def.ghi"]


class TestCli:
    """Test cases for the command line client."""

    @pytest.fixture
    def key_path(self, tmp_path, keypair):
        path = tmp_path / "client-private.pem"
        path.write_bytes(keypair.private_pem())
        return str(path)

    @pytest.fixture
    def transport(self, keypair):
        app = create_app(
            config=get_config("pop_auth", 8080, env="test"),
            key_provider=StaticKeyProvider({"clientkey": keypair.public_key}),
        )
        return httpx.ASGITransport(app=app)

    def parse(self, *argv) -> argparse.Namespace:
        return cli.build_parser(BaseConfig()).parse_args(["--url", "http://testserver/helloworld", *argv])

    @pytest.mark.asyncio
    async def test_prints_server_response(self, key_path, transport, capsys):
        exit_code = await cli.run(self.parse("--key", key_path), transport=transport)

        assert exit_code == 0
        assert "Server Response: Hello, World!" in capsys.readouterr().out.splitlines()

    @pytest.mark.asyncio
    async def test_replay_flag_shows_rejection(self, key_path, transport, capsys):
        exit_code = await cli.run(self.parse("--key", key_path, "--replay"), transport=transport)

        output = capsys.readouterr().out.splitlines()
        assert exit_code == 1
        accepted = output.index("Server Response: Hello, World!")
        rejected = output.index("Failed to get a response from the server.")
        assert accepted < rejected
        assert "Status: 400 Replay detected!" in output[rejected:]

    @pytest.mark.asyncio
    async def test_requires_private_key(self):
        args = self.parse()
        args.key = None

        with pytest.raises(ValidationError):
            await cli.run(args)

    @pytest.mark.asyncio
    async def test_connection_failure(self, key_path, capsys):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        exit_code = await cli.run(self.parse("--key", key_path), transport=httpx.MockTransport(handler))

        assert exit_code == 1
        assert "Failed to get a response from the server." in capsys.readouterr().out

    def test_main_reports_missing_key_file(self, tmp_path, capsys):
        exit_code = cli.main(["--key", str(tmp_path / "absent.pem")])

        assert exit_code == 2
        assert "Unable to load key" in capsys.readouterr().err
