"""REST API definition using Flask-RESTX."""
from __future__ import annotations

from flask import Flask
from flask_restx import Api

from .health import ns as health_ns
from .planner import ns as planner_ns


def register_namespaces(api: Api) -> None:
    """Register all API namespaces."""
    api.add_namespace(health_ns, path="/health")
    api.add_namespace(planner_ns, path="/planner")


def create_api(app: Flask) -> Api:
    api = Api(
        app,
        version=app.config.get("API_VERSION", "0.1.0"),
        title=app.config.get("API_TITLE", "Tuition Planner API"),
        doc="/api/docs",
        prefix="/api",
    )
    register_namespaces(api)
    return api
