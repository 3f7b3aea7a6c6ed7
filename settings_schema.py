from pydantic import BaseModel, Field, ValidationError

class AppConfigSchema(BaseModel):
    db_path: str = "training.db"
    host: str = "127.0.0.1"
    port: int = Field(8000, ge=1, le=65535)
    log_level: str = "INFO"
    default_page_size: int = Field(50, ge=1)

def validate_settings(data: dict) -> None:
    try:
        AppConfigSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
