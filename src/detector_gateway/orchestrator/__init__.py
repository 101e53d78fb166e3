"""
detector_gateway.orchestrator

Classification pipeline package (LangGraph state machine).

Responsibilities:
- Typed state schema, nodes, routing, and graph compilation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Call sites should go through services.classification_service, which owns the session.
