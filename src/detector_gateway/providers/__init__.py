"""
detector_gateway.providers

Classification provider package.

Responsibilities:
- Provider boundary (protocol, verdict model, error types).
- Per-provider HTTP adapters with their own response parsers.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The orchestrator depends on the ClassificationProvider protocol, never on a concrete adapter.
