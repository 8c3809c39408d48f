"""Health check endpoint."""
from fastapi import APIRouter, Depends

from ..dependencies import get_orchestrator
from core.search_orchestrator import SearchOrchestrator


router = APIRouter()


@router.get("/health")
async def health_check(orchestrator: SearchOrchestrator = Depends(get_orchestrator)):
    """
    Health check with search statistics.

    Example response:
        ```json
        {
            "status": "ok",
            "tabs": {"mobilax": "settled"},
            "errors": {"no_agent": 1}
        }
        ```
    """
    report = orchestrator.error_reporter.generate_report()
    return {
        "status": "ok",
        "tabs": {session.supplier: session.state.value for session in orchestrator.tab_registry},
        "errors": report["error_types"],
    }
