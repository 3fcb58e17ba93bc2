"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Publishing
    publish_threshold: int = field(
        default_factory=lambda: int(os.getenv("PUBLISH_THRESHOLD", "80"))
    )
    trust_document_type: str = field(
        default_factory=lambda: os.getenv("TRUST_DOCUMENT_TYPE", "rpp_certificate")
    )
    reviewer_roles: tuple[str, ...] = field(
        default_factory=lambda: _split_csv(os.getenv("REVIEWER_ROLES", "reviewer,admin"))
    )

    # Object storage
    storage_gateway_url: Optional[str] = field(
        default_factory=lambda: os.getenv("STORAGE_GATEWAY_URL") or None
    )
    request_timeout: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30")))
    max_upload_bytes: int = field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_BYTES", str(25 * 1024 * 1024)))
    )

    # Recommendations
    similar_limit: int = field(default_factory=lambda: int(os.getenv("SIMILAR_LIMIT", "3")))
    similar_pool_size: int = field(
        default_factory=lambda: int(os.getenv("SIMILAR_POOL_SIZE", "60"))
    )

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    persist: bool = field(default_factory=lambda: os.getenv("PERSIST", "false").lower() == "true")

    def __post_init__(self) -> None:
        if not 0 <= self.publish_threshold <= 100:
            raise ValueError("PUBLISH_THRESHOLD must be between 0 and 100")
        if self.max_upload_bytes <= 0:
            raise ValueError("MAX_UPLOAD_BYTES must be positive")
        if self.similar_limit < 1 or self.similar_pool_size < 1:
            raise ValueError("SIMILAR_LIMIT and SIMILAR_POOL_SIZE must be positive")

    @property
    def persist_path(self) -> Optional[str]:
        """JSON file backing the in-memory database, when persistence is on."""
        if not self.persist:
            return None
        return str(Path(self.data_dir) / "listings.json")

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "publish_threshold": self.publish_threshold,
            "trust_document_type": self.trust_document_type,
            "reviewer_roles": list(self.reviewer_roles),
            "storage_gateway_url": self.storage_gateway_url,
            "request_timeout": self.request_timeout,
            "max_upload_bytes": self.max_upload_bytes,
            "similar_limit": self.similar_limit,
            "similar_pool_size": self.similar_pool_size,
            "data_dir": self.data_dir,
            "persist": self.persist,
        }
