# server/run.py
"""
Main entry point for the AgriSphere Irrigation Advisor backend
"""

from dotenv import load_dotenv
load_dotenv()

import uvicorn
import logging
from contextlib import asynccontextmanager

from api.app import create_app
from core.config import get_settings, validate_api_keys
from core.logging import setup_logging
from agents.irrigation.agent import IrrigationAgent
from agents.base import agent_registry

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app):
    """Application lifespan management"""

    # Startup
    logger.info("Starting AgriSphere Irrigation Advisor")
    settings = get_settings()
    validate_api_keys(settings)

    logger.info("Initializing agents...")
    try:
        irrigation_agent = IrrigationAgent(settings=settings)
        await irrigation_agent.startup()
        agent_registry.register(irrigation_agent)
        logger.info("Irrigation agent registered")

        health_results = await agent_registry.health_check_all()
        for agent_name, health in health_results.items():
            logger.info(f"{agent_name}: {health['status']}")

    except Exception as e:
        logger.error(f"Failed to initialize agents: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down AgriSphere Irrigation Advisor")
    await agent_registry.shutdown_all()

def create_application():
    """Create FastAPI application with all configurations"""
    return create_app(lifespan=lifespan)

def main():
    """Main entry point"""
    settings = get_settings()

    logger.info(f"Starting server on {settings.api_host}:{settings.api_port}")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"Debug mode: {settings.debug}")

    if settings.debug:
        # Import string so reload works
        uvicorn.run(
            "run:create_application",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )
    else:
        app = create_application()
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            reload=False,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )

if __name__ == "__main__":
    main()
