"""Navigation menu route for the editor front end."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.container import container
from core.logging import get_logger
from services.workflow import WorkflowService

logger = get_logger(__name__)
router = APIRouter(prefix="/api/menu", tags=["menu"])


def get_workflow_service() -> WorkflowService:
    return container.workflow_service()


def build_menu(total_workflows: int) -> dict:
    return {
        "items": [
            {"label": "Home", "href": "/"},
            {
                "label": f"Workflows ({total_workflows})",
                "href": "/workflows",
                "children": [{"label": "Active", "href": "/active"}],
            },
            {"label": "Settings", "href": "/settings"},
        ]
    }


@router.get("")
async def get_menu(workflow_service: WorkflowService = Depends(get_workflow_service)):
    """Menu items with the current workflow count in the Workflows label."""
    try:
        count = await workflow_service.get_workflows_count()
        return build_menu(count["total"])
    except Exception as e:
        logger.error("Failed to build menu", error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})
