"""
detector_gateway.identity

Federated identity package.

Responsibilities:
- Verify identity assertions issued by an external provider (Google).
"""

# Package marker.
