from fastapi import APIRouter

from selfecho.api.imap import router as imap_router

api_router = APIRouter()

api_router.include_router(imap_router, prefix="/imap", tags=["imap"])
