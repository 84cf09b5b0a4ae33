from fastapi import APIRouter, Depends, Response

from app.auth import clear_identity, issue_identity
from app.dependencies import get_store
from app.schemas import LoginRequest, LoginResponse, MessageResponse
from app.services import account_service
from app.storage import Store

router = APIRouter(tags=["auth"])

@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, response: Response, store: Store = Depends(get_store)):
    user = await account_service.login(store, data.email, data.password)
    issue_identity(response, user["user_id"])
    return {"message": "Login successful", "user": user}

@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    clear_identity(response)
    return {"message": "Logout successful"}
