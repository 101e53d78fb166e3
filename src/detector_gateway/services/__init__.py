"""
detector_gateway.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions.
- Quota, cache, validation and maintenance components used by the pipeline.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services take an AsyncSession and a Settings instance in their constructor; tests pass
# an in-memory SQLite session and a fake clock.
