"""
Run configuration for change point detection.

Usage:
    from fabisearch.config import DetectionConfig

    config = DetectionConfig.build(mindist=50, rank=4, alpha="p-value")
    config.rank_selection   # FixedRank(4)
    config.alpha            # None -> p-values are reported
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidInputError
from .nmf import Algorithm
from .rank import parse_rank
from .significance import StatTest, parse_alpha


class DetectionConfig(BaseModel):
    """Every tunable of detect_cps, with the defaults of the reference method."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    mindist: int = Field(default=35, ge=1, description="Minimum distance between change points")
    nruns: int = Field(default=50, ge=1, description="Restarts per factorization during the search")
    nreps: int = Field(default=100, ge=2, description="Repetitions of the refit and permutation steps")
    alpha: Optional[float] = Field(default=0.05, description="Significance level; None reports p-values")
    rank: Any = Field(default="optimal", description="'optimal' or a fixed positive integer")
    algtype: Algorithm = Field(default=Algorithm.BRUNET, description="NMF update family")
    test_type: StatTest = Field(default=StatTest.T_TEST, description="Two-sample test for inference")
    fdr: bool = Field(default=False, description="Benjamini-Hochberg adjustment of the p-values")
    seed: int = Field(default=123, description="Seed of the run's random stream")
    n_jobs: int = Field(default=1, description="Worker threads for factorization fits; -1 for one per task")
    verbose: bool = Field(default=False, description="Show progress bars")

    @field_validator("alpha", mode="before")
    @classmethod
    def _check_alpha(cls, value):
        return parse_alpha(value)

    @field_validator("rank", mode="before")
    @classmethod
    def _check_rank(cls, value):
        parse_rank(value)
        return value

    @field_validator("algtype", mode="before")
    @classmethod
    def _check_algtype(cls, value):
        return Algorithm.parse(value)

    @field_validator("test_type", mode="before")
    @classmethod
    def _check_test_type(cls, value):
        return StatTest.parse(value)

    @field_validator("n_jobs")
    @classmethod
    def _check_n_jobs(cls, value):
        if value == 0 or value < -1:
            raise ValueError("n_jobs must be a positive integer or -1")
        return value

    @property
    def rank_selection(self):
        return parse_rank(self.rank)

    @classmethod
    def build(cls, **kwargs):
        """Create a config, reporting invalid values as InvalidInputError."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            raise InvalidInputError(str(exc)) from exc
