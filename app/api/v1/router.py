from fastapi import APIRouter
from api.v1.routes.reminders import router as reminders_router


# Main v1 router (includes all endpoints)
router = APIRouter()
router.include_router(reminders_router)
