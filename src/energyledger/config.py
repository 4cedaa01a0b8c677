"""Configuration for the analytics engines, loaded from environment variables."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CostSettings(BaseSettings):
    """Tariff used by the cost analyzer."""

    model_config = SettingsConfigDict(
        env_prefix="ENERGYLEDGER_COST_", env_file=".env", extra="ignore"
    )

    peak_rate: float = Field(default=0.15, ge=0)  # $/kWh
    off_peak_rate: float = Field(default=0.08, ge=0)  # $/kWh
    demand_charge_rate: float = Field(default=10.0, ge=0)  # $/kW
    fixed_charge: float = Field(default=50.0, ge=0)  # $/month
    tax_rate: float = Field(default=0.08, ge=0, le=1)
    peak_start_hour: int = Field(default=9, ge=0, le=23)
    peak_end_hour: int = Field(default=17, ge=0, le=23)
    forecast_band: float = Field(default=0.2, ge=0, le=1)
    forecast_days: int = Field(default=30, ge=1)

    @model_validator(mode="after")
    def _check_peak_window(self) -> "CostSettings":
        if self.peak_start_hour > self.peak_end_hour:
            raise ValueError("peak_start_hour must not be after peak_end_hour")
        return self

    @property
    def peak_hour_count(self) -> int:
        return self.peak_end_hour - self.peak_start_hour + 1


class DemandSettings(BaseSettings):
    """Thresholds and adjustment factors for demand profiling."""

    model_config = SettingsConfigDict(
        env_prefix="ENERGYLEDGER_DEMAND_", env_file=".env", extra="ignore"
    )

    history_days: int = Field(default=30, ge=1)
    peak_threshold: float = Field(default=0.8, gt=0)
    load_factor_threshold: float = Field(default=0.7, ge=0)
    power_factor_threshold: float = Field(default=0.9, ge=0, le=1)
    power_factor: float = Field(default=0.92, ge=0, le=1)  # assumed, not metered
    min_prediction_points: int = Field(default=24, ge=1)
    weather_impact: float = 0.15
    seasonality_impact: float = 0.10
    operational_impact: float = 0.20
    prediction_confidence: float = Field(default=0.85, ge=0, le=1)
    prediction_range: float = Field(default=0.1, ge=0, le=1)
    energy_rate: float = Field(default=0.15, ge=0)  # $/kWh used for savings estimates


class SustainabilitySettings(BaseSettings):
    """Emission factors, benchmarks and score weights."""

    model_config = SettingsConfigDict(
        env_prefix="ENERGYLEDGER_SUSTAINABILITY_", env_file=".env", extra="ignore"
    )

    baseline_emissions: float = Field(default=0.5, gt=0)  # kg CO2/kWh
    emission_factor: float = Field(default=0.4, ge=0)  # kg CO2/kWh
    industry_benchmark: float = Field(default=75.0, ge=0, le=100)
    square_footage: float = Field(default=10_000.0, gt=0)
    solar_efficiency: float = 0.20
    wind_efficiency: float = 0.35
    solar_share: float = Field(default=0.15, ge=0, le=1)
    wind_share: float = Field(default=0.25, ge=0, le=1)
    renewable_savings_rate: float = Field(default=0.12, ge=0)  # $/kWh
    waste_tolerance: float = Field(default=1.1, ge=1)
    peak_efficiency: float = 85.0
    off_peak_efficiency: float = 90.0
    carbon_weight: float = 0.3
    renewable_weight: float = 0.3
    efficiency_weight: float = 0.2
    waste_weight: float = 0.2

    @model_validator(mode="after")
    def _check_weights(self) -> "SustainabilitySettings":
        total = (
            self.carbon_weight + self.renewable_weight + self.efficiency_weight + self.waste_weight
        )
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"score weights must sum to 1.0, got {total}")
        if self.solar_share + self.wind_share > 1:
            raise ValueError("solar_share + wind_share must not exceed 1.0")
        return self


class BillingSettings(BaseSettings):
    """Connection settings for the external text-generation service."""

    model_config = SettingsConfigDict(
        env_prefix="ENERGYLEDGER_BILLING_", env_file=".env", extra="ignore"
    )

    base_url: str = "https://api.anthropic.com"
    api_key: str = ""
    model: str = "claude-3-opus-20240229"
    api_version: str = "2023-06-01"
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.7, ge=0, le=1)
    timeout: float = Field(default=30.0, gt=0)
    cache_ttl_seconds: float = Field(default=3600.0, ge=0)
    cache_maxsize: int = Field(default=128, ge=1)
    min_confidence: float = Field(default=0.7, ge=0, le=1)
