"""
Guest gateway service package.

The gateway fronts the upstream Responses API, enforcing:
- Authentication: short-lived HS256 guest tokens it issues itself
- Rate limiting: a fixed-window budget per token subject
- Request validation: strict Responses API request shape
- Relaying: buffered or event-stream passthrough of the upstream answer

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.auth: Token issuer and validator.
- app.ratelimit: In-memory and Redis fixed-window limiters.
- app.validation: Request body checks.
- app.relay: Upstream HTTP relay.
- app.domain: Request authentication and the echo store.
"""
