"""Core business logic.

Modules:
- models: domain entities and their document form
- content_generator: validated tests and lesson paths from the LLM
- leveling: placement bands and the promotion ladder
- progress_tracker: lesson completion and sequential unlocking
- analytics: band strengths/weaknesses, promotion history, read models
- live_updates: change feed for live dashboards
- session: test, lesson and path flows
"""

__all__ = [
    "models",
    "content_generator",
    "leveling",
    "progress_tracker",
    "analytics",
    "live_updates",
    "session",
]
