"""
Application configuration
"""
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_TITLE: str = "Build Descriptor API"
    API_VERSION: str = "0.1.0"

    # Package sources, searched in order
    MAVEN_REPOSITORIES: List[str] = [
        "https://dl.google.com/dl/android/maven2",
        "https://repo.maven.apache.org/maven2",
    ]
    LOCAL_MAVEN_REPOSITORY: Optional[Path] = None
    RESOLVER_TIMEOUT: float = 10.0  # seconds

    # Where reports go when a request asks for them to be written
    REPORTS_PATH: str = "/files/reports"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
