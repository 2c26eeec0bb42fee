"""
Application configuration for the event intelligence pipeline.

Provides environment-aware settings with the defaults the dashboard ships
with. Similarity weights, anomaly thresholds and storage keys are all
configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SimilarityWeights(BaseModel):
	"""
	Weights of the four sub-scores in a deduplication score.

	The weights are expected to sum to 1.0 so the overall score stays in [0, 1].
	"""

	title: float = Field(0.4, ge=0.0, le=1.0)
	source: float = Field(0.2, ge=0.0, le=1.0)
	location: float = Field(0.2, ge=0.0, le=1.0)
	time: float = Field(0.2, ge=0.0, le=1.0)


class DeduplicationConfig(BaseModel):
	"""
	Configuration for cross-cluster deduplication.

	Notes:
	- similarity_threshold: overall score at or above which two events merge.
	- time_window_hours: events further apart than this never merge.
	- max_location_distance_km: distance at which location similarity hits 0.
	- max_merged_sources: number of top sources kept on a merged event.
	"""

	similarity_threshold: float = Field(0.75, ge=0.0, le=1.0)
	time_window_hours: float = Field(24.0, gt=0.0)
	max_location_distance_km: float = Field(50.0, gt=0.0)
	max_merged_sources: int = Field(5, ge=1)
	weights: SimilarityWeights = SimilarityWeights()


class AlertConfig(BaseModel):
	"""
	Alert rule engine configuration.
	"""

	rule_id_prefix: str = Field("rule", min_length=1)
	storage_version: int = Field(1, ge=1)


class BaselineConfig(BaseModel):
	"""
	Configuration for anomaly baselines.

	Notes:
	- strategy: 'static' keeps the seeded mean/std and only counts samples;
	  'welford' folds observations into running mean/variance.
	- min_samples: warm-up observations before running statistics are exposed;
	  also the sample count before baselines start flushing.
	- window_size_hours: nominal window recorded on every baseline.
	- flush_every: persist baselines each time the velocity baseline
	  reaches a multiple of this many samples.
	- seed_std_ratio: seeded std as a fraction of the seeded mean.
	"""

	strategy: str = Field(
		"static",
		description="Baseline strategy: 'static' or 'welford'",
	)
	min_samples: int = Field(30, ge=1)
	window_size_hours: int = Field(168, ge=1)
	flush_every: int = Field(100, ge=1)
	seed_std_ratio: float = Field(0.3, ge=0.0)


class AnomalyConfig(BaseModel):
	"""
	Anomaly detection configuration.
	"""

	anomaly_threshold: float = Field(0.7, ge=0.0, le=1.0)
	convergence_radius_km: float = Field(100.0, gt=0.0)
	min_events_for_convergence: int = Field(3, ge=1)
	threat_escalation_threshold: float = Field(1.5, gt=0.0)
	history_limit: int = Field(1000, ge=1)
	baselines: BaselineConfig = BaselineConfig()

	risk_breakpoints: Dict[str, float] = Field(
		default_factory=lambda: {
			"critical": 0.9,
			"high": 0.75,
			"medium": 0.5,
		}
	)


class StorageConfig(BaseModel):
	"""
	Durable key-value storage configuration.
	"""

	backend: str = Field("file", description="Storage backend: 'file' or 'memory'")
	data_dir: Path = Field(Path("data"), description="Directory for JSON store files")
	alert_rules_key: str = "alert-rules-v1"
	dedup_stats_key: str = "event-dedup-stats-v1"
	baselines_key: str = "anomaly-baselines-v1"


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="INTEL_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	deduplication: DeduplicationConfig = DeduplicationConfig()
	alerts: AlertConfig = AlertConfig()
	anomaly: AnomalyConfig = AnomalyConfig()
	storage: StorageConfig = StorageConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
