"""
Account endpoints.

POST /api/auth/register    create an account, returns a bearer token
POST /api/auth/login       exchange credentials for a bearer token
GET  /api/auth/me          the caller's profile
"""
from fastapi import APIRouter, Depends

from core.accounts import AccountService
from core.models.user import Identity, LoginRequest, RegisterRequest
from services.api.dependencies import current_identity, get_accounts

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, accounts: AccountService = Depends(get_accounts)):
    user, token = await accounts.register(payload)
    return {"message": "User registered successfully", "token": token, "user": user.to_public_dict()}


@router.post("/login")
async def login(payload: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    user, token = await accounts.login(payload)
    return {"message": "Login successful", "token": token, "user": user.to_public_dict()}


@router.get("/me")
async def me(
    identity: Identity = Depends(current_identity),
    accounts: AccountService = Depends(get_accounts),
):
    return {"user": (await accounts.me(identity)).to_public_dict()}
