from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import get_current_user, user_dict
from showroom.core.config import settings
from showroom.core.database import get_db
from showroom.core.security import create_session_token
from showroom.models.user import User
from showroom.services.auth_service import AuthService

router = APIRouter()

class SignUpRequest(BaseModel):
    name: str
    email: str
    password: str

class LoginRequest(BaseModel):
    email: str
    password: str

def _session_response(user: User, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(jsonable_encoder({"user": user_dict(user)}), status_code=status_code)
    response.set_cookie(key=settings.SESSION_COOKIE, value=create_session_token(user.id),
                        httponly=True, samesite="lax", max_age=settings.SESSION_MAX_AGE)
    return response

@router.get("/login")
async def login_page():
    # Target of the unauthenticated redirect
    return {"detail": "Login required", "login": "POST /auth/login", "signup": "POST /auth/signup"}

@router.post("/login")
async def login(req: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await AuthService(db).login(req.email, req.password)
    return _session_response(user)

@router.post("/signup")
async def signup(req: SignUpRequest, db: AsyncSession = Depends(get_db)):
    user = await AuthService(db).sign_up(req.name, req.email, req.password)
    return _session_response(user, status_code=201)

@router.post("/logout")
async def logout():
    response = JSONResponse({"status": "success"})
    response.delete_cookie(settings.SESSION_COOKIE)
    return response

@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {"user": user_dict(user)}
