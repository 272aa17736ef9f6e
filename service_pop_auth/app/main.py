"""
PoP Auth service.
"""

from typing import Optional

from fastapi import FastAPI, Header
from fastapi.responses import PlainTextResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import AccessLayerException, AuthenticationError, ReplayDetectedError, ServiceError
from shared.logging import set_subject
from .authenticator import AuthDecision, PopAuthenticator, RejectionReason
from .keys import KeyProvider, PemFileKeyProvider
from .replay import ReplayGuard
from .validation import TokenVerifier

SERVICE_NAME = "pop_auth"
DEFAULT_PORT = 8080

INVALID_TOKEN_MESSAGE = "Invalid PoP token"


class PopAuthService(BaseService):
    """Serves the PoP-protected hello world resource."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        key_provider: Optional[KeyProvider] = None,
        replay_guard: Optional[ReplayGuard] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config)

        self.key_provider = key_provider or self._create_key_provider()
        # Resolve once so a missing key fails at startup, not on the first request.
        self.key_provider.get_public_key(self.config.pop_key_alias)

        self.verifier = TokenVerifier(
            algorithm=self.config.pop_algorithm,
            leeway_seconds=self.config.pop_clock_leeway_seconds,
        )
        self.replay_guard = replay_guard or ReplayGuard(
            eviction_grace_seconds=self.config.pop_clock_leeway_seconds,
            sweep_interval_seconds=self.config.pop_replay_sweep_interval_seconds,
        )
        self.authenticator = PopAuthenticator(
            verifier=self.verifier,
            replay_guard=self.replay_guard,
            key_provider=self.key_provider,
            key_alias=self.config.pop_key_alias,
        )

        self._setup_pop_routes()

    def _create_key_provider(self) -> KeyProvider:
        path = self.config.pop_public_key_path
        if not path:
            raise ServiceError(
                "No public key configured; set ACCESS_POP_PUBLIC_KEY_PATH",
                details={"alias": self.config.pop_key_alias},
            )
        return PemFileKeyProvider({self.config.pop_key_alias: path})

    def _setup_pop_routes(self):
        """Set up PoP-protected routes."""

        # Synchronous on purpose: FastAPI runs it on the worker thread pool,
        # so concurrent requests reach the replay guard from several threads.
        @self.app.get("/helloworld", response_class=PlainTextResponse)
        def hello_world(authorization: Optional[str] = Header(default=None)):
            """Return a greeting to callers holding a fresh, valid PoP token."""
            with self.metrics.time_operation("pop_verification_duration_seconds"):
                decision = self.authenticator.authenticate(authorization)
            self.metrics.record_auth_decision(decision.outcome, len(self.replay_guard))

            if not decision.accepted:
                raise self._rejection_error(decision)

            set_subject(decision.claims.subject)
            self.logger.info("Hello world served")
            return "Hello, World!"

    def _rejection_error(self, decision: AuthDecision) -> AccessLayerException:
        """Translate a rejected decision into the transport-level error."""
        details = {"outcome": decision.outcome}

        if decision.reason is RejectionReason.REPLAY_DETECTED:
            details["subject"] = decision.claims.subject if decision.claims else None
            return ReplayDetectedError(details=details)

        if decision.reason is RejectionReason.MISSING_CREDENTIALS:
            return AuthenticationError("", details=details)

        message = INVALID_TOKEN_MESSAGE
        if self.config.pop_debug_errors:
            message = f"{message}: {decision.outcome}: {decision.detail}"
        details["detail"] = decision.detail
        return AuthenticationError(message, details=details)

    async def startup(self):
        self.logger.info(
            "PoP auth service starting",
            port=self.port,
            key_alias=self.config.pop_key_alias,
            algorithm=self.verifier.algorithm,
            debug_errors=self.config.pop_debug_errors,
        )
        if self.config.pop_debug_errors:
            self.logger.warning("Verification failure detail is exposed to clients")

    async def shutdown(self):
        self.logger.info("PoP auth service stopping", nonces_held=len(self.replay_guard))
        self.replay_guard.clear()
        await super().shutdown()

    async def _check_dependencies(self):
        """Check that the configured verification key still resolves."""
        has_key = self.key_provider.has_key(self.config.pop_key_alias)
        return {"key_provider": "ok" if has_key else "error"}


def create_app(
    config: Optional[ServiceConfig] = None,
    key_provider: Optional[KeyProvider] = None,
    replay_guard: Optional[ReplayGuard] = None,
) -> FastAPI:
    """Create FastAPI application."""
    service = PopAuthService(config=config, key_provider=key_provider, replay_guard=replay_guard)
    return service.app


def main():
    service = PopAuthService(config=get_config(SERVICE_NAME, DEFAULT_PORT))
    service.run()


if __name__ == "__main__":
    main()
