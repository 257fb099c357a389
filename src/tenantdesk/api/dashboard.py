"""Dashboard widget data endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_tenant
from ..db.database import get_db
from ..domain.widgets import WidgetConfigError
from ..services.widgets import WidgetDataService, WidgetQueryError
from .middleware import ProblemDetailsException
from .schemas import DashboardDataRequest, ProblemDetails

router = APIRouter(tags=["dashboard"])


@router.post(
    "/v1/dashboard-data",
    responses={
        200: {"description": "Widget data"},
        400: {"model": ProblemDetails, "description": "Invalid widget request"},
        500: {"model": ProblemDetails, "description": "Widget query failed"},
    },
)
def get_dashboard_data(
    envelope: DashboardDataRequest,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Compute data for one dashboard widget.

    The body is ``{widget_type, config}``. Every query is limited to the
    caller's tenant account; ``$me`` in filters means the caller.
    """
    if not envelope.widget_type or envelope.config is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="widget_type and config are required",
        )

    try:
        return WidgetDataService(db, ctx).run(envelope.widget_type, envelope.config)
    except WidgetConfigError as e:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Invalid Widget Request",
            detail=str(e),
        )
    except WidgetQueryError as e:
        raise ProblemDetailsException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            title="Widget Query Failed",
            detail=str(e),
        )
