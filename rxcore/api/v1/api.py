from fastapi import APIRouter
from rxcore.api.v1.prescriptions import routes as prescriptions

api_router = APIRouter()
api_router.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])
