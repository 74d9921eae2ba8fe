"""
chartops - Configuration Module
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Dict, Optional


class Settings(BaseSettings):
    """Application settings"""
    
    # Helm Configuration
    helm_binary: str = Field(default="helm", alias="HELM_BINARY")
    helm_timeout_seconds: Optional[float] = Field(default=600.0, alias="HELM_TIMEOUT_SECONDS")
    helm_insecure: bool = Field(default=False, alias="HELM_INSECURE")
    helm_env: Dict[str, str] = Field(default_factory=dict, alias="HELM_EXTRA_ENV")
    
    # Registry Mirror Configuration
    registry_mirror_endpoint: Optional[str] = Field(default=None, alias="REGISTRY_MIRROR_ENDPOINT")
    registry_mirror_port: Optional[int] = Field(default=None, alias="REGISTRY_MIRROR_PORT")
    registry_mirror_namespaces: Dict[str, str] = Field(default_factory=dict, alias="REGISTRY_MIRROR_NAMESPACES")
    registry_mirror_insecure: bool = Field(default=False, alias="REGISTRY_MIRROR_INSECURE")
    
    # Kubernetes Configuration
    kubeconfig_path: Optional[str] = Field(default=None, alias="KUBECONFIG")
    
    # Application Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )


settings = Settings()
