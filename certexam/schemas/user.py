from pydantic import BaseModel, EmailStr, Field

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = ""

class UserResponse(BaseModel):
    id: str
    email: EmailStr
    name: str
    is_admin: bool
    class Config:
        from_attributes = True
