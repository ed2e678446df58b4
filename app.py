"""Chef Synthesis Service - HTTP entry point.

Single entry point for the recipe synthesis service:
- Loads the Credential Pool from the environment (GEMINI_API_KEY, GEMINI_API_KEY_SECONDARY, GEMINI_API_KEYS)
- Builds the synthesis pipeline and its FastAPI surface
- Serves on PORT with uvicorn

Run with: python app.py
"""

import uvicorn

from src.api.server import create_app
from src.pipeline.synthesis import SynthesisPipeline
from src.utils.config import config
from src.utils.logger import logger


pipeline = SynthesisPipeline()
health = pipeline.health()
if health.credentials:
    logger.info(f"Credential pool loaded: {health.credentials} credential(s)")
else:
    # Not fatal: /api/v1/health reports "unconfigured" so the deployment error is visible
    logger.warning("No GEMINI_API_KEY configured; service will report 'unconfigured'")

app = create_app(pipeline)


if __name__ == "__main__":
    logger.info(f"Starting Chef Synthesis Service on port {config.PORT}")
    logger.info(f"Recipe model: {config.RECIPE_MODEL}, image model: {config.IMAGE_MODEL}")
    logger.info(f"API docs available at: http://localhost:{config.PORT}/docs")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
