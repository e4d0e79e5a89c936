from fastapi import APIRouter
from apps.invest.routes import health, documents, versions, extracted_data, mappings

router = APIRouter()

router.include_router(health.router, prefix="", tags=["Health"])

# Document routes; versions, extracted data and mappings hang off /documents/{id}
router.include_router(documents.router, prefix="", tags=["Documents"])
router.include_router(versions.router, prefix="", tags=["Versions"])
router.include_router(extracted_data.router, prefix="", tags=["Extracted Data"])
router.include_router(mappings.router, prefix="", tags=["Mappings"])
