"""
Bayesian ARIMA forecaster sampled with NUTS.

The series is differenced ``d`` times and standardised. On that scale

    z_t = mu + phi_1 z_{t-1} + ... + phi_p z_{t-p}
             + theta_1 e_{t-1} + ... + theta_q e_{t-q} + e_t,    e_t ~ N(0, sigma^2)

conditional on the first ``p`` values, with

    mu ~ N(0, 1),  phi_i, theta_j ~ N(0, coef_prior_sd),  sigma ~ HalfNormal(sigma_prior_sd)

Forecast paths are simulated forward from every posterior draw and
undifferenced, so the intervals carry both parameter and innovation
uncertainty. Point forecasts are the posterior predictive mean.
"""

from dataclasses import dataclass
from typing import Any

import arviz as az
import numpy as np
import pymc as pm
import pytensor
import pytensor.tensor as pt
from loguru import logger
from numpy.typing import NDArray

from sgpbench.config import BayesianARIMAConfig
from sgpbench.exceptions import FitFailure
from sgpbench.timeseries import TimeSeries

from .base import BaseForecaster, FittedModel, ForecastResult, future_times


@dataclass(frozen=True)
class PosteriorARIMA:
    """
    Posterior of a Bayesian ARIMA fit.

    Attributes:
        trace: InferenceData returned by ``pm.sample``
        order: (p, d, q)
        z: Differenced, standardised training series
        loc: Mean removed before standardising
        scale: Standard deviation divided out when standardising
    """

    trace: az.InferenceData
    order: tuple[int, int, int]
    z: NDArray[np.floating]
    loc: float
    scale: float

    def draws(self) -> dict[str, NDArray[np.floating]]:
        """Posterior draws flattened over chains: mu, sigma (S,), phi (S, p), theta (S, q)."""
        p, _, q = self.order
        posterior = self.trace.posterior
        mu = posterior["mu"].values.reshape(-1)
        n_draws = len(mu)
        return {
            "mu": mu,
            "sigma": posterior["sigma"].values.reshape(-1),
            "phi": posterior["phi"].values.reshape(n_draws, p) if p else np.zeros((n_draws, 0)),
            "theta": posterior["theta"].values.reshape(n_draws, q)
            if q
            else np.zeros((n_draws, 0)),
        }


class BayesianARIMAForecaster(BaseForecaster):
    """ARIMA(p, d, q) with NUTS posterior sampling (``BayesianARIMAConfig``)."""

    name = "bayesian_arima"
    config_type = BayesianARIMAConfig

    def _fit(
        self, train: TimeSeries, config: BayesianARIMAConfig
    ) -> tuple[PosteriorARIMA, dict[str, Any]]:
        p, d, q = config.order
        min_length = d + p + q + 2
        if len(train) < min_length:
            raise ValueError(
                f"y_train has {len(train)} samples but order {config.order} "
                f"requires at least {min_length} samples"
            )

        diffed = np.diff(train.values, n=d)
        loc = float(diffed.mean())
        scale = float(diffed.std())
        scale = scale if scale > 0 else 1.0
        z = (diffed - loc) / scale

        model = _build_model(z, config)
        with model:
            trace = pm.sample(
                draws=config.draws,
                tune=config.tune,
                chains=config.chains,
                cores=1,
                target_accept=config.target_accept,
                random_seed=config.random_seed,
                progressbar=False,
                return_inferencedata=True,
                compute_convergence_checks=False,
            )

        n_total = config.draws * config.chains
        n_divergent = int(trace.sample_stats["diverging"].values.sum())
        if n_divergent == n_total:
            raise FitFailure(
                f"all {n_total} draws diverged",
                model=config.label,
                stage="fit",
                reason="divergence",
                config=config,
            )
        if n_divergent > 0:
            logger.warning(f"{config.label}: {n_divergent}/{n_total} divergent transitions")

        info: dict[str, Any] = {"divergences": n_divergent, "loc": loc, "scale": scale}
        if config.chains > 1:
            info["r_hat_max"] = _check_convergence(trace, config.label)

        return PosteriorARIMA(trace=trace, order=config.order, z=z, loc=loc, scale=scale), info

    def _forecast(
        self,
        model: FittedModel,
        horizon: int | None,
        quantiles: tuple[float, float],
        grid: NDArray[np.floating] | None,
        include_train: bool,
    ) -> ForecastResult:
        config: BayesianARIMAConfig = model.config
        posterior: PosteriorARIMA = model.handle
        train = model.train
        p, d, _ = posterior.order

        draws = posterior.draws()
        rng = np.random.default_rng(config.random_seed)
        if config.n_forecast_paths is not None and config.n_forecast_paths < len(draws["mu"]):
            keep = rng.choice(len(draws["mu"]), size=config.n_forecast_paths, replace=False)
            draws = {k: v[keep] for k, v in draws.items()}

        residuals = arma_residuals(posterior.z, draws)
        z_paths = simulate_paths(posterior.z, residuals, draws, horizon, rng)
        paths = undifference(z_paths * posterior.scale + posterior.loc, train.values, d)

        times = future_times(train, horizon)
        point = paths.mean(axis=0)
        lower, upper = np.quantile(paths, quantiles, axis=0)

        samples = paths
        if include_train:
            # One-step-ahead fitted values exist from index d + p onwards
            fitted = train.values[d + p :] - residuals[:, p:] * posterior.scale
            times = np.concatenate([train.time[d + p :], times])
            point = np.concatenate([fitted.mean(axis=0), point])
            fit_lower, fit_upper = np.quantile(fitted, quantiles, axis=0)
            lower = np.concatenate([fit_lower, lower])
            upper = np.concatenate([fit_upper, upper])
            samples = np.concatenate([fitted, paths], axis=1)

        return ForecastResult(
            model=model.label,
            time=times,
            point=point,
            lower=lower,
            upper=upper,
            quantiles=quantiles,
            scale=train.scale,
            samples=samples,
        )


def _build_model(z: NDArray[np.floating], config: BayesianARIMAConfig) -> pm.Model:
    p, _, q = config.order
    n = len(z)
    target = z[p:]
    lags = np.column_stack([z[p - i : n - i] for i in range(1, p + 1)]) if p else None

    with pm.Model() as model:
        mu = pm.Normal("mu", mu=0.0, sigma=1.0)
        sigma = pm.HalfNormal("sigma", sigma=config.sigma_prior_sd)

        eta = mu
        if p:
            phi = pm.Normal("phi", mu=0.0, sigma=config.coef_prior_sd, shape=p)
            eta = mu + pt.dot(lags, phi)

        if not q:
            pm.Normal("z_obs", mu=eta, sigma=sigma, observed=target)
        else:
            theta = pm.Normal("theta", mu=0.0, sigma=config.coef_prior_sd, shape=q)

            residual = pt.as_tensor_variable(target) - eta

            def step(r_t, recent, theta_):
                # recent holds e_{t-1}, ..., e_{t-q}
                e_t = r_t - pt.dot(theta_, recent)
                return pt.concatenate([pt.shape_padleft(e_t), recent[:-1]])

            states, _ = pytensor.scan(
                fn=step,
                sequences=[residual],
                outputs_info=[pt.zeros((q,), dtype=residual.dtype)],
                non_sequences=[theta],
            )
            errors = states[:, 0]
            pm.Potential("likelihood", pm.logp(pm.Normal.dist(mu=0.0, sigma=sigma), errors).sum())

    return model


def _check_convergence(trace: az.InferenceData, label: str) -> float:
    summary = az.summary(trace, kind="diagnostics")
    problematic = summary[summary["r_hat"] > 1.01]
    if len(problematic) > 0:
        logger.warning(f"{label}: variables with R-hat > 1.01: {problematic.index.tolist()}")
    return float(summary["r_hat"].max())


def arma_residuals(
    z: NDArray[np.floating], draws: dict[str, NDArray[np.floating]]
) -> NDArray[np.floating]:
    """
    Innovations e_t for every posterior draw.

    Returns:
        Array of shape (S, len(z)); the first p columns are zero
    """
    mu, phi, theta = draws["mu"], draws["phi"], draws["theta"]
    p, q = phi.shape[1], theta.shape[1]
    errors = np.zeros((len(mu), len(z)))
    for t in range(p, len(z)):
        pred = mu.copy()
        for i in range(1, p + 1):
            pred += phi[:, i - 1] * z[t - i]
        for j in range(1, min(q, t) + 1):
            pred += theta[:, j - 1] * errors[:, t - j]
        errors[:, t] = z[t] - pred
    return errors


def simulate_paths(
    z: NDArray[np.floating],
    residuals: NDArray[np.floating],
    draws: dict[str, NDArray[np.floating]],
    horizon: int,
    rng: np.random.Generator,
) -> NDArray[np.floating]:
    """Simulate ``horizon`` future values of z for every draw, shape (S, horizon)."""
    mu, sigma, phi, theta = draws["mu"], draws["sigma"], draws["phi"], draws["theta"]
    p, q = phi.shape[1], theta.shape[1]
    n, n_draws = len(z), len(mu)

    history = np.broadcast_to(z, (n_draws, n))
    values = np.concatenate([history, np.zeros((n_draws, horizon))], axis=1)
    errors = np.concatenate([residuals, np.zeros((n_draws, horizon))], axis=1)
    for t in range(n, n + horizon):
        shock = sigma * rng.standard_normal(n_draws)
        value = mu + shock
        for i in range(1, p + 1):
            value += phi[:, i - 1] * values[:, t - i]
        for j in range(1, q + 1):
            value += theta[:, j - 1] * errors[:, t - j]
        values[:, t] = value
        errors[:, t] = shock
    return values[:, n:]


def undifference(
    paths: NDArray[np.floating], history: NDArray[np.floating], d: int
) -> NDArray[np.floating]:
    """Invert ``d``-th order differencing of paths continuing ``history``."""
    for k in range(d - 1, -1, -1):
        last = np.diff(history, n=k)[-1]
        paths = last + np.cumsum(paths, axis=1)
    return paths
