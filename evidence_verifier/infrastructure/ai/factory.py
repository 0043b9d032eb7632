"""Factory for creating and managing semantic oracles."""

import logging
import os
from typing import Dict, Optional, Type

from ...domain.ports.semantic_oracle import SemanticOracle
from .openai_oracle import OpenAIOracleAdapter, OpenAIOracleConfig

logger = logging.getLogger(__name__)


class OracleFactory:
    """Factory for creating and managing semantic oracles."""

    def __init__(self):
        """Initialize the factory."""
        self._providers: Dict[str, Type[SemanticOracle]] = {}
        self._instances: Dict[str, SemanticOracle] = {}

        # Register default providers
        self.register_provider("openai", OpenAIOracleAdapter)

    def register_provider(self, name: str, provider_class: Type[SemanticOracle]) -> None:
        """Register a new oracle provider.

        Args:
            name: Provider name
            provider_class: Provider class
        """
        self._providers[name] = provider_class

    async def create_provider(self, name: str, **kwargs) -> SemanticOracle:
        """Create and initialize an oracle instance.

        Args:
            name: Provider name
            **kwargs: Provider-specific configuration

        Returns:
            Initialized oracle instance

        Raises:
            ValueError: If provider not found
            ConnectionError: If the oracle cannot be initialized
        """
        if name not in self._providers:
            raise ValueError(f"Provider '{name}' not found")

        if name not in self._instances:
            if name == "openai":
                config = OpenAIOracleConfig(api_key=os.getenv("OPENAI_API_KEY", ""), **kwargs)
                provider = self._providers[name](config=config)
            else:
                provider = self._providers[name](**kwargs)

            await provider.initialize()
            self._instances[name] = provider
            logger.info(f"✅ Oracle provider '{name}' ready")

        return self._instances[name]

    def get_provider(self, name: str) -> Optional[SemanticOracle]:
        """Get an existing oracle instance, or None."""
        return self._instances.get(name)

    @property
    def available_providers(self) -> Dict[str, bool]:
        """Get dictionary of registered providers and their availability."""
        return {
            name: name in self._instances and self._instances[name].is_available
            for name in self._providers
        }

    async def shutdown(self) -> None:
        """Shutdown all oracle instances."""
        for provider in self._instances.values():
            await provider.shutdown()
        self._instances.clear()
