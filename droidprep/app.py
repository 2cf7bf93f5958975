import logging
import os
from typing import Optional, Type

from flask import Flask

from droidprep.api import api
from droidprep.config import ActionInputs, Config, DevelopmentConfig, ProductionConfig
from droidprep.extensions import GITHUB_EXTENSION, limiter
from droidprep.services.github import GitHubClient

def create_app(
    config_class: Optional[Type[Config]] = None,
    inputs: Optional[ActionInputs] = None,
    github=None
):
    """Application factory function"""
    app = Flask(__name__)

    if config_class is None:
        config_class = ProductionConfig if os.environ.get("FLASK_ENV") == "production" else DevelopmentConfig
    app.config.from_object(config_class)
    app.config["ACTION_INPUTS"] = inputs or ActionInputs.from_env()

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.setLevel(logging.INFO)

    # Read-only host lookups for triage; writes never happen here
    if github is None and os.environ.get("GITHUB_TOKEN"):
        github = GitHubClient(
            os.environ["GITHUB_TOKEN"],
            api_url=app.config["ACTION_INPUTS"].github_api_url
        )
    if github is not None:
        app.extensions[GITHUB_EXTENSION] = github

    limiter.init_app(app)

    app.register_blueprint(api, url_prefix="/api")

    from droidprep.api.routes.webhooks import init_webhook_handlers
    init_webhook_handlers(app)

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5001, debug=True)
