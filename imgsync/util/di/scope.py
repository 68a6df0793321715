"""Custom Dishka scopes for imgsync."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """imgsync dependency injection scopes.

    Hierarchy: APP -> BATCH

    - APP: Process lifetime (HTTP pools, credential store, tool adapters)
    - BATCH: One pipeline run
    """

    APP = new_scope("APP")
    BATCH = new_scope("BATCH")
