# api/v1/router.py
from fastapi import APIRouter
from api.v1.invest import router as invest_router
from core.auth.routes import router as auth_router

router = APIRouter()

# Mount authentication router
router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

# Mount domain routers
router.include_router(invest_router, prefix="/invest")
