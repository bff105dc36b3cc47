# storefront/dashboard/routes.py
from ..services.stats_service import dashboard_stats
from ..utils.api import ok
from ..utils.decorators import permission_required
from . import bp


@bp.get("/stats")
@permission_required("dashboard.view")
def stats(ctx):
    return ok("dashboard stats", {"stats": dashboard_stats()})
