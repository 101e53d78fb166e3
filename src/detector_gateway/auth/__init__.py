"""
detector_gateway.auth

Authentication/authorization package.

Responsibilities:
- Session-token issuing, verification and revocation.
- FastAPI auth dependencies (verified claims + admin check).
"""

# Package marker.
