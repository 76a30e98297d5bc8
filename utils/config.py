import os
import logging
from typing import Optional
from flask import Flask
from dotenv import load_dotenv

from utils.transmutation import DEFAULT_TRANSMUTATION_RULES

logger = logging.getLogger(__name__)

# Hardcoded defaults; every value can be overridden from the environment / .env
HARDCODE_ENVIRONMENT = "local"
HARDCODE_SECRET_KEY = "dev-secret-key-change-in-production"
HARDCODE_DEFAULT_TRANSMUTATION = "deped"
HARDCODE_WEIGHT_TOLERANCE = 0.01
HARDCODE_AT_RISK_GRADE_THRESHOLD = 75
HARDCODE_AT_RISK_MISSING_RATIO = 0.3
HARDCODE_LOG_LEVEL = "INFO"

TRANSMUTATION_MODES = {
    "deped": DEFAULT_TRANSMUTATION_RULES,
    "linear": None,
}


class GradebookConfig:
    """Loads gradebook settings onto a Flask app's config."""

    def __init__(self, app: Optional[Flask] = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        load_dotenv()
        logger.info("Environment variables loaded from .env file")

        environment = os.getenv("ENVIRONMENT", HARDCODE_ENVIRONMENT).lower()
        if environment not in ("local", "production", "online"):
            raise ValueError(
                f"Invalid ENVIRONMENT value: {environment}. Must be 'local' or 'production'/'online'"
            )
        logger.info(f"Gradebook environment: {environment}")

        transmutation_mode = os.getenv(
            "DEFAULT_TRANSMUTATION", HARDCODE_DEFAULT_TRANSMUTATION
        ).lower()
        if transmutation_mode not in TRANSMUTATION_MODES:
            raise ValueError(
                f"Invalid DEFAULT_TRANSMUTATION value: {transmutation_mode}. Must be one of {sorted(TRANSMUTATION_MODES)}"
            )

        app.config["ENVIRONMENT"] = environment
        # Flask pre-populates SECRET_KEY with None
        if not app.config.get("SECRET_KEY"):
            app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", HARDCODE_SECRET_KEY)
        app.config["DEFAULT_TRANSMUTATION"] = transmutation_mode
        app.config["WEIGHT_TOLERANCE"] = float(
            os.getenv("WEIGHT_TOLERANCE", HARDCODE_WEIGHT_TOLERANCE)
        )
        app.config["AT_RISK_GRADE_THRESHOLD"] = float(
            os.getenv("AT_RISK_GRADE_THRESHOLD", HARDCODE_AT_RISK_GRADE_THRESHOLD)
        )
        app.config["AT_RISK_MISSING_RATIO"] = float(
            os.getenv("AT_RISK_MISSING_RATIO", HARDCODE_AT_RISK_MISSING_RATIO)
        )
        app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", HARDCODE_LOG_LEVEL).upper()

        logger.info(
            f"Transmutation default: {transmutation_mode}, weight tolerance: {app.config['WEIGHT_TOLERANCE']}"
        )


def get_default_rules(app: Flask):
    """Transmutation table used for schemes that carry none (None = linear curve)."""
    return TRANSMUTATION_MODES[app.config.get("DEFAULT_TRANSMUTATION", HARDCODE_DEFAULT_TRANSMUTATION)]
