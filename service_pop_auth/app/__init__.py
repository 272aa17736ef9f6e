"""
PoP Auth Service package.

This package exposes the FastAPI application that authenticates requests
carrying proof-of-possession tokens: JWTs the client signs with its own
private key and which embed a single-use nonce.

- app.main: Application entrypoint that wires routes and lifecycle.
- app.authenticator: Per-request flow from Authorization header to decision.
- app.validation: Signature and claim verification.
- app.replay: Nonce registry rejecting reused tokens.
- app.keys: Key provider abstraction and PEM helpers.

Design notes:
- Importing the package must not load keys or touch the filesystem; that
  happens when the service object is constructed.
- Use the shared/ utilities for logging, metrics, config and errors.
- The only cross-request state is the replay guard, owned by the service
  object and injected into the authenticator.
"""
