"""
Edge gateway package for the ReviewAI mobile client.

The gateway fronts every client request, enforcing:
- Rate limiting: fixed-window counter in the shared Redis store
- Authentication: short-lived device tokens issued and verified locally
- Proxying: server-held keys injected into third-party API calls

Structure:
- app.main: FastAPI app, middleware wiring, catch-all entry into the router.
- app.auth: token issuance, verification and refresh.
- app.ratelimit: fixed-window limiter and its request middleware.
- app.routing: static route table and bearer-token authorization.
- app.domain: route handlers.
- app.proxy: upstream dispatch and the region-pinned generative-AI path.
- app.adapters: httpx clients for third-party APIs and the pinned unit.
"""
