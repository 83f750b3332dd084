from fastapi import APIRouter

from user_api.api.routes import users

api_router = APIRouter()
api_router.include_router(users.router)
