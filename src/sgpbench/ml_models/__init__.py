"""Statistical model components used by the forecasting backends."""
