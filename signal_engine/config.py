"""Application configuration with comprehensive validation."""
from typing import Optional, Literal, Dict
from functools import lru_cache
from pydantic import Field, field_validator, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Live signal engine settings with production-grade validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Live Signal Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Scoring task provider (OpenAI-compatible chat completions)
    OPENAI_API_KEY: Optional[SecretStr] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    SCORING_MODEL: str = "gpt-4o-mini"
    SCORING_TEMPERATURE: float = Field(default=0.0, ge=0.0, le=1.0)
    SCORING_HTTP_TIMEOUT: float = Field(default=30.0, ge=1.0, le=120.0)

    # Ingestion throttle
    MIN_CYCLE_INTERVAL_SECONDS: float = Field(default=2.0, ge=0.0, le=60.0)
    STUCK_CYCLE_CEILING_SECONDS: float = Field(default=30.0, ge=1.0, le=600.0)
    MAX_TRANSCRIPT_CHARS: int = Field(default=8000, ge=500, le=100000)

    # Fan-out orchestrator
    TASK_TIMEOUT_SECONDS: float = Field(default=12.0, ge=0.1, le=120.0)
    DEPENDENT_TASK_TIMEOUT_SECONDS: float = Field(default=8.0, ge=0.1, le=120.0)
    CYCLE_TIMEOUT_SECONDS: float = Field(default=25.0, ge=0.5, le=300.0)
    PILLAR_WINDOW_CHARS: int = Field(default=6000, ge=200)
    TRIGGER_WINDOW_CHARS: int = Field(default=6000, ge=200)
    OBJECTION_WINDOW_CHARS: int = Field(default=4000, ge=200)
    QUESTION_WINDOW_CHARS: int = Field(default=3000, ge=200)
    TRUTH_WINDOW_CHARS: int = Field(default=6000, ge=200)
    INSIGHTS_WINDOW_CHARS: int = Field(default=4000, ge=200)
    DEPENDENT_WINDOW_CHARS: int = Field(default=1500, ge=100)
    SMALL_TASK_MAX_TOKENS: int = Field(default=400, ge=50)
    LARGE_TASK_MAX_TOKENS: int = Field(default=1200, ge=50)
    MAX_OBJECTIONS: int = Field(default=5, ge=1, le=20)

    # Signal validation
    DEDUP_OVERLAP_THRESHOLD: float = Field(default=0.65, ge=0.1, le=1.0)
    EVIDENCE_WORD_MATCH_RATIO: float = Field(default=0.8, ge=0.1, le=1.0)
    EVIDENCE_FUZZY_MATCH_THRESHOLD: float = Field(default=85.0, ge=50.0, le=100.0)
    HINT_CONFIDENCE_THRESHOLD: float = Field(default=0.7, ge=0.0, le=1.0)

    # Pillar weights (P6 is reverse scored)
    W_P1_PERCEIVED_SPREAD: float = Field(default=1.5, ge=0.0, le=10.0)
    W_P2_URGENCY: float = Field(default=1.0, ge=0.0, le=10.0)
    W_P3_DECISIVENESS: float = Field(default=1.0, ge=0.0, le=10.0)
    W_P4_AVAILABLE_MONEY: float = Field(default=1.5, ge=0.0, le=10.0)
    W_P5_RESPONSIBILITY: float = Field(default=1.0, ge=0.0, le=10.0)
    W_P6_PRICE_SENSITIVITY: float = Field(default=1.0, ge=0.0, le=10.0)
    W_P7_TRUST: float = Field(default=1.0, ge=0.0, le=10.0)

    # Redis (latest analysis snapshot)
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL_ANALYSIS: int = 3600  # 1 hour

    @field_validator("OPENAI_API_KEY")
    @classmethod
    def validate_openai_key(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        if v is not None and not v.get_secret_value().startswith("sk-"):
            raise ValueError("Invalid OpenAI API key format")
        return v

    @model_validator(mode="after")
    def validate_stuck_ceiling(self):
        """Only a hung cycle may outlive the stuck ceiling."""
        if self.STUCK_CYCLE_CEILING_SECONDS <= self.CYCLE_TIMEOUT_SECONDS:
            raise ValueError(
                "STUCK_CYCLE_CEILING_SECONDS must exceed CYCLE_TIMEOUT_SECONDS, "
                f"got {self.STUCK_CYCLE_CEILING_SECONDS} <= {self.CYCLE_TIMEOUT_SECONDS}"
            )
        if self.STUCK_CYCLE_CEILING_SECONDS < 2 * self.MIN_CYCLE_INTERVAL_SECONDS:
            raise ValueError(
                "STUCK_CYCLE_CEILING_SECONDS must be at least twice "
                f"MIN_CYCLE_INTERVAL_SECONDS, got {self.STUCK_CYCLE_CEILING_SECONDS}"
            )
        return self

    @model_validator(mode="after")
    def validate_cycle_timeout(self):
        """A cycle must fit its fan-out tasks plus the objection-dependent round."""
        needed = self.TASK_TIMEOUT_SECONDS + self.DEPENDENT_TASK_TIMEOUT_SECONDS
        if self.CYCLE_TIMEOUT_SECONDS < needed:
            raise ValueError(
                "CYCLE_TIMEOUT_SECONDS must cover TASK_TIMEOUT_SECONDS + "
                f"DEPENDENT_TASK_TIMEOUT_SECONDS, got {self.CYCLE_TIMEOUT_SECONDS} < {needed}"
            )
        return self

    @model_validator(mode="after")
    def validate_pillar_weights(self):
        """Validate at least one pillar carries weight."""
        total = sum(self.pillar_weights.values())
        if total <= 0:
            raise ValueError(f"Pillar weights must sum to a positive value, got {total}")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production has a scoring provider configured."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if not self.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY required in production")
        return self

    @property
    def pillar_weights(self) -> Dict[str, float]:
        """Get default pillar weights keyed by pillar id."""
        return {
            "P1": self.W_P1_PERCEIVED_SPREAD,
            "P2": self.W_P2_URGENCY,
            "P3": self.W_P3_DECISIVENESS,
            "P4": self.W_P4_AVAILABLE_MONEY,
            "P5": self.W_P5_RESPONSIBILITY,
            "P6": self.W_P6_PRICE_SENSITIVITY,
            "P7": self.W_P7_TRUST,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
