# taxonomy_admin/utils/monitoring.py

from flask import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


def init_monitoring(app):
    """Expose Prometheus metrics when monitoring is enabled"""
    if not app.config.get("MONITORING_ENABLED", False):
        app.logger.debug("Monitoring disabled; metrics endpoint not registered")
        return

    endpoint = app.config.get("METRICS_ENDPOINT", "/metrics")
    if "prometheus_metrics" in app.view_functions:
        return

    @app.route(endpoint, methods=["GET"], endpoint="prometheus_metrics")
    def prometheus_metrics():
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    app.logger.info(f"Prometheus metrics exposed at {endpoint}")
