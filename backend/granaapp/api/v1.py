# granaapp/api/v1.py
from fastapi import APIRouter
from granaapp.api.endpoints import chat, transcribe, quotes, status

api_router = APIRouter()

api_router.include_router(chat.router)
api_router.include_router(transcribe.router)
api_router.include_router(quotes.router)
api_router.include_router(status.router)
