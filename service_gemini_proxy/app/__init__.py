"""
Region-pinned generative-AI unit.

Deployed once, in a region the generative-AI upstream accepts traffic from.
Every gateway instance forwards generative-AI calls here under one logical
unit name. The unit is the only holder of the upstream key and runs the calls
it receives one at a time.

Structure:
- app.main: FastAPI service exposing ``POST /units/{name}/generate``.
- app.unit: the serialized unit applying the operation allow-list and key.
- app.adapters: httpx client for the generative-AI upstream.
"""
