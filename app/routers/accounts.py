from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile

from app.auth import clear_identity
from app.dependencies import get_store
from app.exceptions import ValidationError
from app.schemas import MessageResponse, NicknameUpdate, PasswordUpdate, UserResponse
from app.services import account_service
from app.storage import Store
from app.uploads import has_file, save_upload

router = APIRouter(prefix="/api/accounts", tags=["accounts"])

@router.get("", response_model=list[UserResponse])
async def list_accounts(store: Store = Depends(get_store)):
    return await account_service.get_users(store)

@router.post("", status_code=201, response_model=UserResponse)
async def register(
    request: Request,
    nickname: str | None = Form(None),
    email: str | None = Form(None),
    password: str | None = Form(None),
    profileimg: UploadFile | None = File(None),
    store: Store = Depends(get_store),
):
    # Rejected registrations must not leave an upload behind.
    await account_service.check_registration(store, nickname, email, password)
    profile_image_url = await save_upload(request, profileimg) if has_file(profileimg) else None
    return await account_service.register(store, nickname, email, password, profile_image_url)

@router.get("/{user_id}", response_model=UserResponse)
async def get_account(user_id: int, store: Store = Depends(get_store)):
    return await account_service.get_user(store, user_id)

@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_account(user_id: int, response: Response, store: Store = Depends(get_store)):
    await account_service.delete_account(store, user_id)
    clear_identity(response)
    return {"message": "User and associated posts deleted successfully"}

@router.put("/{user_id}/nickname", response_model=UserResponse)
async def update_nickname(user_id: int, data: NicknameUpdate, store: Store = Depends(get_store)):
    return await account_service.update_nickname(store, user_id, data.nickname)

@router.put("/{user_id}/password", response_model=UserResponse)
async def update_password(user_id: int, data: PasswordUpdate, store: Store = Depends(get_store)):
    return await account_service.update_password(store, user_id, data.password)

@router.api_route("/{user_id}/profileimg", methods=["PUT", "POST"], response_model=UserResponse)
async def update_profile_image(
    user_id: int,
    request: Request,
    profileimg: UploadFile | None = File(None),
    store: Store = Depends(get_store),
):
    if not has_file(profileimg):
        raise ValidationError("No file uploaded")
    await account_service.get_user(store, user_id)
    url = await save_upload(request, profileimg)
    return await account_service.update_profile_image(store, user_id, url)
