from fastapi import APIRouter
from craftlink.auth.routes import auth_router
from craftlink.common.routes import home_router

cur_version = "1.0.0"

public_routers = APIRouter()

public_routers.include_router(auth_router, prefix="/auth", tags=["auth"])
public_routers.include_router(home_router, tags=["home"])
