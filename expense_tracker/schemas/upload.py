from pydantic import BaseModel, ConfigDict, Field, field_validator

class SignUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    content_type: str = Field(..., alias="type")

    @field_validator('filename', 'content_type')
    @classmethod
    def validate_present(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be empty')
        return v

class SignUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(..., alias="uploadUrl")
    key: str
