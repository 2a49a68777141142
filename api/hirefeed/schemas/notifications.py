from datetime import datetime
from typing import Literal

from pydantic import BaseModel

ApplicationOrder = Literal["stored", "newest_first"]


class ApplicationView(BaseModel):
    applicant_id: str
    applicant_username: str
    applied_at: datetime
    post_id: str
    post_caption: str
