from fastapi import APIRouter, Depends, File, Request, UploadFile

from app.auth import get_caller_id
from app.dependencies import get_store
from app.exceptions import Forbidden, ValidationError
from app.schemas import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    ImageUploadResponse,
    MessageResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    ViewsResponse,
)
from app.services import comment_service, post_service
from app.storage import Store
from app.uploads import has_file, save_upload

router = APIRouter(prefix="/api/posts", tags=["posts"])

@router.get("", response_model=list[PostResponse])
async def list_posts(store: Store = Depends(get_store)):
    return await post_service.get_posts(store)

@router.post("", status_code=201, response_model=PostResponse)
async def create_post(
    data: PostCreate,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    return await post_service.create_post(store, caller_id, data)

@router.post("/image", response_model=ImageUploadResponse)
async def upload_post_image(
    request: Request,
    post_image: UploadFile | None = File(None, alias="postImage"),
):
    if not has_file(post_image):
        raise ValidationError("No file uploaded")
    return {"image_url": await save_upload(request, post_image)}

@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, store: Store = Depends(get_store)):
    return await post_service.get_post(store, post_id)

@router.api_route("/{post_id}", methods=["PUT", "PATCH"], response_model=PostResponse)
async def update_post(
    post_id: int,
    data: PostUpdate,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    return await post_service.update_post(store, post_id, caller_id, data)

@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    await post_service.delete_post(store, post_id, caller_id)
    return {"message": "Post deleted"}

@router.put("/{post_id}/views", response_model=ViewsResponse)
async def increment_views(post_id: int, store: Store = Depends(get_store)):
    return {"views": await post_service.increment_views(store, post_id)}

@router.get("/{post_id}/checkEditPermission", response_model=MessageResponse)
async def check_edit_permission(
    post_id: int,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    if not await post_service.check_edit_permission(store, post_id, caller_id):
        raise Forbidden("No permission to edit this post")
    return {"message": "Edit permitted"}

# --- Comments ---

@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(post_id: int, store: Store = Depends(get_store)):
    return await comment_service.get_comments(store, post_id)

@router.post("/{post_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    author_id = data.author_id if data.author_id is not None else caller_id
    return await comment_service.add_comment(store, post_id, data.content, author_id)

@router.get("/{post_id}/comments/{comment_id}", response_model=CommentResponse)
async def get_comment(post_id: int, comment_id: int, store: Store = Depends(get_store)):
    return await comment_service.get_comment(store, post_id, comment_id)

@router.put("/{post_id}/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    post_id: int,
    comment_id: int,
    data: CommentUpdate,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    return await comment_service.update_comment(store, post_id, comment_id, data.content, caller_id)

@router.delete("/{post_id}/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    post_id: int,
    comment_id: int,
    caller_id: int | None = Depends(get_caller_id),
    store: Store = Depends(get_store),
):
    await comment_service.delete_comment(store, post_id, comment_id, caller_id)
    return {"message": "Comment deleted"}
