"""Configuration management using Pydantic BaseSettings.

This module provides centralized configuration management with validation,
type safety, and sensible defaults for the case duplicate checker.
"""
from typing import List
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Main configuration class combining all settings."""

    # LLM provider selection
    llm_provider: str = Field("openai", env="LLM_PROVIDER", description="LLM provider: openai or bedrock")

    # OpenAI Configuration
    openai_api_key: str = Field("", env="OPENAI_API_KEY", description="OpenAI API key")
    openai_model: str = Field("gpt-4o", env="OPENAI_MODEL", description="Vision-capable OpenAI model")
    openai_temperature: float = Field(0.0, env="OPENAI_TEMPERATURE", ge=0.0, le=2.0, description="Model temperature")

    # Bedrock Configuration
    aws_region: str = Field("eu-west-1", env="AWS_REGION", description="AWS region for Bedrock")
    bedrock_model_id: str = Field(
        "anthropic.claude-3-haiku-20240307-v1:0", env="BEDROCK_MODEL_ID", description="Bedrock model id"
    )
    bedrock_temperature: float = Field(0.0, env="BEDROCK_TEMPERATURE", ge=0.0, le=1.0, description="Bedrock temperature")
    bedrock_max_tokens: int = Field(1024, env="BEDROCK_MAX_TOKENS", ge=64, le=8192, description="Bedrock max output tokens")

    # Match weights (with image evidence)
    match_text_weight: float = Field(0.4, env="MATCH_TEXT_WEIGHT", ge=0.0, le=1.0, description="Text similarity weight")
    match_image_weight: float = Field(0.4, env="MATCH_IMAGE_WEIGHT", ge=0.0, le=1.0, description="Image similarity weight")
    match_contact_weight: float = Field(0.2, env="MATCH_CONTACT_WEIGHT", ge=0.0, le=1.0, description="Contact similarity weight")

    # Match weights (no image evidence)
    match_no_image_text_weight: float = Field(
        0.7, env="MATCH_NO_IMAGE_TEXT_WEIGHT", ge=0.0, le=1.0, description="Text weight when images are missing"
    )
    match_no_image_contact_weight: float = Field(
        0.3, env="MATCH_NO_IMAGE_CONTACT_WEIGHT", ge=0.0, le=1.0, description="Contact weight when images are missing"
    )

    # External call bounds
    match_request_timeout_seconds: float = Field(
        30.0, env="MATCH_REQUEST_TIMEOUT_SECONDS", gt=0.0, le=300.0, description="Timeout per external comparison"
    )
    image_fetch_timeout_seconds: float = Field(
        10.0, env="IMAGE_FETCH_TIMEOUT_SECONDS", gt=0.0, le=120.0, description="Timeout per image download"
    )
    image_max_bytes: int = Field(
        5 * 1024 * 1024, env="IMAGE_MAX_BYTES", ge=1024, le=50 * 1024 * 1024, description="Max image size to compare"
    )
    case_image_base_url: str = Field("", env="CASE_IMAGE_BASE_URL", description="Base URL for relative image references")

    # Duplicate check policy
    duplicate_similarity_threshold: float = Field(
        0.8, env="DUPLICATE_SIMILARITY_THRESHOLD", ge=0.0, le=1.0, description="Overall score that flags a likely duplicate"
    )
    duplicate_candidate_limit: int = Field(
        50, env="DUPLICATE_CANDIDATE_LIMIT", ge=0, le=10000, description="Recent cases to compare against (0=all)"
    )
    duplicate_max_concurrent: int = Field(
        4, env="DUPLICATE_MAX_CONCURRENT", ge=1, le=64, description="Concurrent case comparisons"
    )

    # Score cache
    score_cache_enabled: bool = Field(True, env="SCORE_CACHE_ENABLED", description="Cache service scores")
    score_cache_ttl_seconds: int = Field(3600, env="SCORE_CACHE_TTL_SECONDS", ge=60, le=86400, description="Score cache TTL")
    score_cache_max_size: int = Field(1000, env="SCORE_CACHE_MAX_SIZE", ge=10, le=100000, description="Max cached scores")

    # Circuit breaker
    circuit_breaker_enabled: bool = Field(True, env="CIRCUIT_BREAKER_ENABLED", description="Protect external calls")
    circuit_breaker_failure_threshold: int = Field(
        5, env="CIRCUIT_BREAKER_FAILURE_THRESHOLD", ge=1, le=100, description="Failures before opening"
    )
    circuit_breaker_timeout_seconds: int = Field(
        60, env="CIRCUIT_BREAKER_TIMEOUT_SECONDS", ge=1, le=3600, description="Seconds before half-open"
    )
    circuit_breaker_half_open_calls: int = Field(
        2, env="CIRCUIT_BREAKER_HALF_OPEN_CALLS", ge=1, le=20, description="Test calls in half-open state"
    )

    # Logging Configuration
    log_level: str = Field("INFO", env="LOG_LEVEL", description="Logging level")
    log_format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s", env="LOG_FORMAT", description="Log format")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @validator('llm_provider')
    def validate_llm_provider(cls, v):
        if v.lower() not in ['openai', 'bedrock']:
            raise ValueError('llm_provider must be "openai" or "bedrock"')
        return v.lower()

    @validator('log_level')
    def validate_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Invalid log level: {v}. Valid options: {valid_levels}')
        return v.upper()

    @validator('case_image_base_url')
    def validate_image_base_url(cls, v):
        if v and not v.startswith(('http://', 'https://')):
            raise ValueError('case_image_base_url must be an http(s) URL')
        return v.rstrip('/')

    def validate_configuration(self) -> List[str]:
        """Validate the complete configuration and return any issues."""
        issues = []

        if self.llm_provider == "openai" and not self.openai_api_key:
            issues.append("OPENAI_API_KEY is required when LLM_PROVIDER=openai")
        if self.llm_provider == "bedrock" and not self.bedrock_model_id:
            issues.append("BEDROCK_MODEL_ID is required when LLM_PROVIDER=bedrock")

        weighted = self.match_text_weight + self.match_image_weight + self.match_contact_weight
        if abs(weighted - 1.0) > 1e-6:
            issues.append("MATCH_TEXT_WEIGHT + MATCH_IMAGE_WEIGHT + MATCH_CONTACT_WEIGHT must sum to 1")

        no_image = self.match_no_image_text_weight + self.match_no_image_contact_weight
        if abs(no_image - 1.0) > 1e-6:
            issues.append("MATCH_NO_IMAGE_TEXT_WEIGHT + MATCH_NO_IMAGE_CONTACT_WEIGHT must sum to 1")

        if self.duplicate_similarity_threshold < 0.5:
            issues.append("DUPLICATE_SIMILARITY_THRESHOLD is very low, legitimate reports may be blocked")

        if self.image_fetch_timeout_seconds > self.match_request_timeout_seconds:
            issues.append("IMAGE_FETCH_TIMEOUT_SECONDS exceeds MATCH_REQUEST_TIMEOUT_SECONDS")

        return issues

    def log_configuration(self) -> None:
        """Log the current configuration (sanitized)."""
        from casematch.utils.logger import log_info

        log_info("Configuration loaded",
                llm_provider=self.llm_provider,
                openai_model=self.openai_model,
                bedrock_model_id=self.bedrock_model_id,
                weights=[self.match_text_weight, self.match_image_weight, self.match_contact_weight],
                no_image_weights=[self.match_no_image_text_weight, self.match_no_image_contact_weight],
                similarity_threshold=self.duplicate_similarity_threshold,
                candidate_limit=self.duplicate_candidate_limit,
                request_timeout_seconds=self.match_request_timeout_seconds,
                score_cache_enabled=self.score_cache_enabled,
                circuit_breaker_enabled=self.circuit_breaker_enabled,
                log_level=self.log_level)


# Global configuration instance (lazy loading)
_config = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment variables."""
    global _config
    _config = Config()
    return _config
