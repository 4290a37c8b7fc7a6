from .prometheus import PrometheusMiddleware, metrics_response, query_metrics

__all__ = ["PrometheusMiddleware", "metrics_response", "query_metrics"]
