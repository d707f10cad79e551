from fastapi import APIRouter
from app.modules.points import api as points
from app.modules.webhooks import api as webhooks

router = APIRouter()
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
router.include_router(points.router, prefix="/points", tags=["points"])
