"""
Model configurations and harness settings.

Every backend is configured through an explicit, frozen pydantic model with a
literal ``kind`` discriminator. Term kinds for the seasonal GP form a closed
set (``"sgp"`` and ``"iid"``), so malformed model specifications are rejected
when the configuration is constructed rather than when the backend is fitted.

Example:
    ```python
    from sgpbench.config import (
        ARIMAConfig,
        NoiseTerm,
        PSDPrior,
        SeasonalGPConfig,
        SeasonalTerm,
    )

    sgp = SeasonalGPConfig(
        terms=[
            SeasonalTerm(period=10, k=30, region=(0, 120), prior=PSDPrior(u=1, alpha=0.01, h=10)),
            NoiseTerm(),
        ]
    )
    arima = ARIMAConfig(order=(2, 1, 0))

    # Same model, different prior threshold
    sgp_wide = sgp.with_prior(u=2.0)
    ```
"""

import math
from pathlib import Path
from typing import Annotated, Literal, Union

import toml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# =========================================
# Priors
# =========================================


class PCPrior(_FrozenModel):
    """Penalised-complexity prior on a standard deviation: P(sd > u) = alpha."""

    u: float = Field(1.0, gt=0, description="Upper threshold on the standard deviation")
    alpha: float = Field(0.5, gt=0, lt=1, description="Exceedance probability")

    @property
    def rate(self) -> float:
        """Rate of the implied exponential prior on the standard deviation."""
        return -math.log(self.alpha) / self.u


class PSDPrior(_FrozenModel):
    """
    Prior on the predictive standard deviation at lead time ``h``.

    P(PSD(h) > u) = alpha, where PSD(h) is the prior standard deviation of the
    process ``h`` covariate units after the start of its support. ``h`` defaults
    to one period of the seasonal term it belongs to.
    """

    u: float = Field(1.0, gt=0, description="Upper threshold on PSD(h)")
    alpha: float = Field(0.01, gt=0, lt=1, description="Exceedance probability")
    h: float | None = Field(None, gt=0, description="Lead time for the PSD")


# =========================================
# Seasonal GP terms
# =========================================


class SeasonalTerm(_FrozenModel):
    """
    Seasonal Gaussian process term.

    Attributes:
        period: Length of one cycle in covariate units (frequency a = 2*pi/period)
        m: Number of harmonics (frequencies a, 2a, ..., m*a)
        k: Number of basis functions (inducing points) over ``region``
        region: Support of the term, the process starts at ``region[0]``
        prior: PSD prior on the process standard deviation
    """

    kind: Literal["sgp"] = "sgp"
    period: float = Field(..., gt=0)
    m: int = Field(1, ge=1)
    k: int = Field(30, ge=3)
    region: tuple[float, float]
    prior: PSDPrior = Field(default_factory=PSDPrior)

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: tuple[float, float]) -> tuple[float, float]:
        if not v[0] < v[1]:
            raise ValueError(f"region must satisfy lower < upper, got {v}")
        return v

    @property
    def frequency(self) -> float:
        """Angular frequency a = 2*pi/period of the first harmonic."""
        return 2 * math.pi / self.period

    @property
    def lead_time(self) -> float:
        """Lead time used to convert the PSD prior (defaults to one period)."""
        return self.prior.h if self.prior.h is not None else self.period


class NoiseTerm(_FrozenModel):
    """Independent Gaussian noise term with a PC prior on its standard deviation."""

    kind: Literal["iid"] = "iid"
    prior: PCPrior = Field(default_factory=PCPrior)


Term = Annotated[Union[SeasonalTerm, NoiseTerm], Field(discriminator="kind")]


# =========================================
# Backend configurations
# =========================================


class ARIMAConfig(_FrozenModel):
    """Fixed-order ARIMA(p, d, q), optionally seasonal SARIMA(p,d,q)(P,D,Q,m)."""

    kind: Literal["arima"] = "arima"
    order: tuple[int, int, int] = (1, 1, 1)
    seasonal_order: tuple[int, int, int, int] | None = None

    @field_validator("order")
    @classmethod
    def validate_order(cls, v: tuple[int, int, int]) -> tuple[int, int, int]:
        if any(o < 0 for o in v):
            raise ValueError(f"order entries must be >= 0, got {v}")
        return v

    @field_validator("seasonal_order")
    @classmethod
    def validate_seasonal_order(
        cls, v: tuple[int, int, int, int] | None
    ) -> tuple[int, int, int, int] | None:
        if v is not None and v[3] <= 0:
            raise ValueError(f"Seasonal period m must be > 0, got {v[3]}")
        return v

    @property
    def label(self) -> str:
        if self.seasonal_order is not None:
            return f"ARIMA{self.order}x{self.seasonal_order}"
        return f"ARIMA{self.order}"


class AutoARIMAConfig(_FrozenModel):
    """Automatic order selection by stepwise information-criterion search."""

    kind: Literal["auto_arima"] = "auto_arima"
    max_p: int = Field(5, ge=0)
    max_q: int = Field(5, ge=0)
    max_d: int = Field(2, ge=0)
    seasonal: bool = False
    period: int = Field(1, ge=1)
    information_criterion: Literal["aic", "aicc", "bic", "hqic"] = "aic"
    stepwise: bool = True

    @model_validator(mode="after")
    def validate_seasonal(self) -> "AutoARIMAConfig":
        if self.seasonal and self.period <= 1:
            raise ValueError("period must be > 1 when seasonal=True")
        return self

    @property
    def label(self) -> str:
        return "AutoARIMA" + (f"[m={self.period}]" if self.seasonal else "")


class BayesianARIMAConfig(_FrozenModel):
    """
    ARIMA(p, d, q) with posterior sampled by NUTS.

    The differenced series is standardised internally; ``coef_prior_sd`` and
    ``sigma_prior_sd`` are expressed on that standardised scale.
    """

    kind: Literal["bayesian_arima"] = "bayesian_arima"
    order: tuple[int, int, int] = (1, 1, 0)
    draws: int = Field(1000, ge=1)
    tune: int = Field(1000, ge=0)
    chains: int = Field(2, ge=1)
    target_accept: float = Field(0.9, gt=0, lt=1)
    random_seed: int | None = 0
    coef_prior_sd: float = Field(0.5, gt=0)
    sigma_prior_sd: float = Field(1.0, gt=0)
    n_forecast_paths: int | None = Field(None, ge=1)

    @field_validator("order")
    @classmethod
    def validate_order(cls, v: tuple[int, int, int]) -> tuple[int, int, int]:
        if any(o < 0 for o in v):
            raise ValueError(f"order entries must be >= 0, got {v}")
        return v

    @property
    def label(self) -> str:
        return f"BayesARIMA{self.order}"


class LatentARConfig(_FrozenModel):
    """Latent AR(p) process plus independent measurement noise."""

    kind: Literal["latent_ar"] = "latent_ar"
    ar_order: int = Field(2, ge=1)
    include_noise: bool = True
    trend: Literal["c", "n"] = "c"

    @property
    def label(self) -> str:
        return f"AR({self.ar_order})" + ("+iid" if self.include_noise else "")


class SeasonalGPConfig(_FrozenModel):
    """
    Seasonal Gaussian process regression.

    Attributes:
        terms: Additive model terms, at least one ``SeasonalTerm`` and at most
            one ``NoiseTerm``
        family: Observation family (Gaussian on the modelling scale)
        n_iter: Optimisation steps for the MAP hyperparameter fit
        learning_rate: Adam learning rate
        jitter: Diagonal jitter for Cholesky factorisations
        random_seed: torch seed set before fitting (None leaves the RNG alone)
    """

    kind: Literal["seasonal_gp"] = "seasonal_gp"
    terms: tuple[Term, ...]
    family: Literal["gaussian"] = "gaussian"
    n_iter: int = Field(300, ge=1)
    learning_rate: float = Field(0.05, gt=0)
    jitter: float = Field(1e-6, gt=0)
    random_seed: int | None = 0

    @model_validator(mode="after")
    def validate_terms(self) -> "SeasonalGPConfig":
        n_seasonal = sum(1 for t in self.terms if t.kind == "sgp")
        n_noise = sum(1 for t in self.terms if t.kind == "iid")
        if n_seasonal == 0:
            raise ValueError("terms must include at least one 'sgp' term")
        if n_noise > 1:
            raise ValueError(f"terms may include at most one 'iid' term, got {n_noise}")
        return self

    @property
    def seasonal_terms(self) -> list[SeasonalTerm]:
        return [t for t in self.terms if isinstance(t, SeasonalTerm)]

    @property
    def noise_term(self) -> NoiseTerm | None:
        for t in self.terms:
            if isinstance(t, NoiseTerm):
                return t
        return None

    @property
    def label(self) -> str:
        parts = [
            f"sGP(period={t.period:g}, u={t.prior.u:g}, alpha={t.prior.alpha:g})"
            for t in self.seasonal_terms
        ]
        if self.noise_term is not None:
            parts.append("iid")
        return "+".join(parts)

    def with_prior(self, u: float | None = None, alpha: float | None = None) -> "SeasonalGPConfig":
        """
        Return a copy with the PSD prior of every seasonal term updated.

        Args:
            u: New threshold (unchanged if None)
            alpha: New exceedance probability (unchanged if None)

        Returns:
            New validated SeasonalGPConfig
        """
        update = {}
        if u is not None:
            update["u"] = u
        if alpha is not None:
            update["alpha"] = alpha

        terms = []
        for term in self.terms:
            if isinstance(term, SeasonalTerm):
                prior = PSDPrior(**{**term.prior.model_dump(), **update})
                terms.append(SeasonalTerm(**{**term.model_dump(exclude={"prior"}), "prior": prior}))
            else:
                terms.append(term)

        return SeasonalGPConfig(**{**self.model_dump(exclude={"terms"}), "terms": terms})


ModelConfig = Annotated[
    Union[
        SeasonalGPConfig,
        ARIMAConfig,
        AutoARIMAConfig,
        BayesianARIMAConfig,
        LatentARConfig,
    ],
    Field(discriminator="kind"),
]

_model_config_adapter = TypeAdapter(ModelConfig)


def parse_model_config(data: dict) -> ModelConfig:
    """Build the configuration named by ``data["kind"]`` from a plain mapping."""
    return _model_config_adapter.validate_python(data)


# =========================================
# Harness settings
# =========================================


class HarnessSettings(_FrozenModel):
    """
    Settings for one evaluation run.

    Attributes:
        scale: Modelling scale applied to every candidate ("log" or "natural")
        split_index: Length of the training prefix (None: chosen by the caller)
        coverage_level: Nominal central interval level (e.g. 0.95 or 0.80)
        fit_timeout: Per-fit timeout in seconds (None disables)
        max_workers: Worker threads for sensitivity sweeps
        log_level: loguru level used by ``configure_notebook_logging``
    """

    scale: Literal["log", "natural"] = "log"
    split_index: int | None = Field(None, ge=1)
    coverage_level: float = Field(0.95, gt=0, lt=1)
    fit_timeout: float | None = Field(None, gt=0)
    max_workers: int = Field(1, ge=1)
    log_level: str = "INFO"

    @property
    def quantiles(self) -> tuple[float, float]:
        """Central interval quantiles implied by ``coverage_level``."""
        tail = (1 - self.coverage_level) / 2
        return (round(tail, 10), round(1 - tail, 10))


def load_settings(path: str | Path) -> HarnessSettings:
    """
    Load HarnessSettings from a TOML file.

    Reads the ``[sgpbench]`` table if present, otherwise the top level.
    Model tables under ``[models]`` are ignored here (see ``load_candidates``).
    """
    with open(path) as f:
        data = toml.load(f)
    section = data.get("sgpbench", data)
    return HarnessSettings(**{k: v for k, v in section.items() if k != "models"})


def load_candidates(path: str | Path) -> dict[str, ModelConfig]:
    """
    Load named model configurations from the ``[models.<name>]`` tables of a TOML file.

    Example file:
        ```toml
        [models.arima]
        kind = "arima"
        order = [2, 1, 0]

        [models.ar2]
        kind = "latent_ar"
        ```
    """
    with open(path) as f:
        data = toml.load(f)
    section = data.get("sgpbench", data)
    models = section.get("models", {})
    return {name: parse_model_config(spec) for name, spec in models.items()}
