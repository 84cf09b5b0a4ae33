from pydantic import BaseModel, Field


# --- User ---

class UserResponse(BaseModel):
    # password is deliberately absent from every response model
    user_id: int
    nickname: str
    email: str
    profile_image_url: str | None = None


class NicknameUpdate(BaseModel):
    nickname: str | None = Field(None, max_length=100)


class PasswordUpdate(BaseModel):
    password: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    message: str
    user: UserResponse


# --- Comment ---

class CommentCreate(BaseModel):
    # Optional here so that a missing value is reported as 400 by the
    # service, not 422 by FastAPI.
    content: str | None = None
    author_id: int | None = None  # falls back to the identity cookie


class CommentUpdate(BaseModel):
    content: str | None = None


class CommentResponse(BaseModel):
    comment_id: int
    post_id: int
    content: str
    author_id: int
    created_at: str
    updated_at: str | None = None
    # Filled from the author's account; None when the account is gone
    # or the comment is embedded in a post response.
    nickname: str | None = None
    profile_image_url: str | None = None


# --- Post ---

class PostCreate(BaseModel):
    title: str | None = Field(None, max_length=300)
    contents: str | None = None
    image_url: str | None = None


class PostUpdate(BaseModel):
    title: str | None = Field(None, max_length=300)
    contents: str | None = None
    image_url: str | None = None


class PostResponse(BaseModel):
    post_id: int
    title: str
    contents: str
    image_url: str | None = None
    author_id: int
    created_at: str
    views: int
    comments: list[CommentResponse] = []


class ViewsResponse(BaseModel):
    views: int


class ImageUploadResponse(BaseModel):
    image_url: str


class MessageResponse(BaseModel):
    message: str
