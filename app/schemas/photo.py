"""
Photo-related Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel

class PhotoUploadRequest(BaseModel):
    """Base64 photo payload; a data URL prefix is accepted"""
    fileBase64: Optional[str] = None
    imageBase64: Optional[str] = None
    base64: Optional[str] = None

    def payload(self) -> Optional[str]:
        return self.fileBase64 or self.imageBase64 or self.base64
