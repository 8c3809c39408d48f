"""FastAPI dependencies."""
from fastapi import Request

from core.search_orchestrator import SearchOrchestrator


async def get_orchestrator(request: Request) -> SearchOrchestrator:
    """
    Get the search orchestrator from app state.

    The orchestrator (and the browser it drives) is created during
    application startup and stored in app.state.

    Example usage:
        ```python
        @router.post("/search")
        async def search(orchestrator: SearchOrchestrator = Depends(get_orchestrator)):
            result = await orchestrator.search("mobilax", "ecran iphone 11")
        ```
    """
    return request.app.state.orchestrator
