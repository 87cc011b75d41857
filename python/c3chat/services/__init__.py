"""Business logic services.

Service-layer functions called by route handlers; they own database
access and orchestrate the LLM gateway and search client.
"""

from c3chat.services.bootstrap import ensure_user

__all__ = [
    "ensure_user",
]
