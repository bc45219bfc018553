"""
DeployWatch - Configuration Settings
"""
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # App Info
    app_name: str = "DeployWatch"
    app_version: str = "1.0.0"
    debug: bool = False
    
    # Storage
    database_path: str = "data_cache/deploywatch.db"
    sqlite_busy_timeout_seconds: float = Field(10.0, gt=0)
    
    # Probe budgets (seconds)
    liveness_timeout_seconds: float = Field(8.0, gt=0, le=60)   # probe-and-record
    metadata_timeout_seconds: float = Field(3.0, gt=0, le=60)   # advisory metadata fetch
    check_timeout_seconds: float = Field(5.0, gt=0, le=60)      # ad-hoc + compliance checks
    follow_redirects: bool = False
    
    # Metadata discovery
    metadata_fallback_paths: List[str] = ["/version", "/health", "/info", "/actuator/info"]
    
    # Parallel Processing
    max_scan_workers: int = Field(20, ge=1, le=200)
    
    # HTTP surface
    cors_origins: List[str] = ["*"]
    
    # Endpoint defaults
    default_region: str = "paris-1"
    
    # Compliance
    flag_missing_uat: bool = False  # PROD observed with no UAT -> WARNING
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
