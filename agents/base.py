# server/agents/base.py
"""
Base agent class for all advisory agents in the system
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple, Type, TypeVar, Generic, List
from pydantic import BaseModel
import logging
from datetime import datetime

from core.config import Settings, get_settings
from core.exceptions import (
    AgentConfigError, AgentError, AgriSphereError, CalculationError, InputValidationError,
    RateLimitError, UpstreamUnavailableError
)

# Type variables for generic typing
RequestType = TypeVar('RequestType', bound=BaseModel)
ResponseType = TypeVar('ResponseType', bound=BaseModel)

class BaseAgent(ABC, Generic[RequestType, ResponseType]):
    """
    Base class for all agents

    Provides common functionality like:
    - Configuration management
    - Error handling
    - Logging
    - Startup/shutdown hooks for shared resources
    """

    # Errors the caller must see as-is; anything else becomes AgentError
    surfaced_errors: Tuple[Type[AgriSphereError], ...] = (
        InputValidationError, RateLimitError, CalculationError, UpstreamUnavailableError
    )

    def __init__(self, agent_name: str, settings: Optional[Settings] = None):
        self.agent_name = agent_name
        self.settings = settings or get_settings()
        self.config = self.settings.get_agent_config(agent_name)
        self.logger = logging.getLogger(f"agents.{agent_name}")

        # Validate configuration
        self._validate_config()

        self.logger.info(f"Initialized {agent_name} agent")

    @abstractmethod
    def _validate_config(self) -> None:
        """Validate agent-specific configuration"""
        pass

    @abstractmethod
    async def process_request(self, request: RequestType) -> ResponseType:
        """Process agent request - must be implemented by subclasses"""
        pass

    async def startup(self) -> None:
        """Start background work owned by the agent"""
        pass

    async def shutdown(self) -> None:
        """Release resources owned by the agent"""
        pass

    async def execute(self, request: RequestType) -> ResponseType:
        """
        Main execution method with timing and error handling
        """
        start_time = datetime.now()

        try:
            self.logger.info(f"Processing {self.agent_name} request")
            response = await self.process_request(request)

            execution_time = (datetime.now() - start_time).total_seconds()
            self.logger.info(f"Request processed in {execution_time:.2f}s")
            return response

        except self.surfaced_errors as e:
            self.logger.warning(f"{self.agent_name} request rejected: {e}")
            raise
        except AgentError:
            raise
        except Exception as e:
            self.logger.error(f"Error processing request: {e}", exc_info=True)
            raise AgentError(f"{self.agent_name} agent failed: {e}") from e

    async def health_check(self) -> Dict[str, Any]:
        """Agent health check: healthy while the configuration validates"""
        health = {"agent": self.agent_name, "timestamp": datetime.now().isoformat()}
        try:
            self._validate_config()
        except (AgentConfigError, ValueError) as e:
            health.update(status="unhealthy", config_valid=False, error=str(e))
        else:
            health.update(status="healthy", config_valid=True)
        return health

    def get_agent_info(self) -> Dict[str, Any]:
        """Get agent information"""
        return {
            "name": self.agent_name,
            "version": self.settings.api_version,
            "config": self.config,
            "description": (self.__class__.__doc__ or f"{self.agent_name} agent").strip()
        }

class AgentRegistry:
    """Registry for managing multiple agents"""

    def __init__(self):
        self._agents: Dict[str, BaseAgent] = {}
        self.logger = logging.getLogger("agents.registry")

    def register(self, agent: BaseAgent) -> None:
        """Register an agent"""
        self._agents[agent.agent_name] = agent
        self.logger.info(f"Registered agent: {agent.agent_name}")

    def unregister(self, agent_name: str) -> Optional[BaseAgent]:
        return self._agents.pop(agent_name, None)

    def get(self, agent_name: str) -> Optional[BaseAgent]:
        return self._agents.get(agent_name)

    def list_agents(self) -> List[str]:
        return list(self._agents)

    async def health_check_all(self) -> Dict[str, Any]:
        return {name: await agent.health_check() for name, agent in self._agents.items()}

    async def shutdown_all(self) -> None:
        """Unregister every agent and release its resources"""
        for name in self.list_agents():
            agent = self._agents.pop(name)
            try:
                await agent.shutdown()
            except Exception as e:
                self.logger.error(f"Error shutting down {name} agent: {e}")
            else:
                self.logger.info(f"Agent {name} shut down")

    def get_agents_info(self) -> Dict[str, Any]:
        return {name: agent.get_agent_info() for name, agent in self._agents.items()}

# Global agent registry
agent_registry = AgentRegistry()
