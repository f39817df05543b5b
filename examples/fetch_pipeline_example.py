"""Example usage of the async pipeline fetch API."""

import asyncio
import logging

from workflow_oras import (
    OrasFlowError,
    check_registry_connectivity,
    fetch_pipeline_script,
    get_manifest,
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    """Fetch a single script and a script from a packaged repository."""
    registry_url = "http://localhost:5000"

    try:
        logger.info("Checking registry connectivity...")
        if not await check_registry_connectivity(registry_url):
            logger.error(f"Registry at {registry_url} is not reachable")
            return
        logger.info("✓ Registry is accessible")

        manifest = await get_manifest("localhost:5000/pipeline:latest")
        logger.info(f"Artifact type: {manifest.artifact_type}")

        script = await fetch_pipeline_script("localhost:5000/pipeline:latest")
        logger.info(f"Single script:\n{script}")

        script = await fetch_pipeline_script(
            "localhost:5000/repo:latest", script_path="Jenkinsfile"
        )
        logger.info(f"Script from repository:\n{script}")

    except OrasFlowError as e:
        logger.error(f"Fetch error: {e}")


if __name__ == "__main__":
    asyncio.run(main())
