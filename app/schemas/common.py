from pydantic import BaseModel


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class PaginationMeta(BaseModel):
    total: int
    page: int
    size: int
    total_pages: int
