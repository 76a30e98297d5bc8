import logging
import os
from flask import Flask
from flask_wtf.csrf import CSRFProtect

from utils.config import GradebookConfig
from blueprints.grades_routes import grades_bp

# Create Flask app
app = Flask(__name__)

# Load settings (.env / environment / hardcoded defaults)
config = GradebookConfig(app)

# Setup logging
logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Initialize CSRF protection; the grade API is JSON-only and exempt
csrf = CSRFProtect(app)
csrf.exempt(grades_bp)


app.register_blueprint(grades_bp)


if __name__ == "__main__":
    logger.info("Application startup initiated")

    # Only start the reloader in development
    use_reloader = os.environ.get("WERKZEUG_RUN_MAIN") != "true"

    app.run(
        host="127.0.0.1",
        port=int(os.getenv("PORT", 5000)),
        debug=app.config.get("ENVIRONMENT") == "local",
        use_reloader=use_reloader,
    )
