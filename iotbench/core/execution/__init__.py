"""
Execution strategies: native session, DB-API and REST transports.
"""

from iotbench.config import AdapterConfig
from iotbench.core.errors import ConfigurationError
from iotbench.core.execution.base import ExecutionOutcome, ExecutionStrategy
from iotbench.core.execution.jdbc import JdbcStrategy
from iotbench.core.execution.rest import RestStrategy
from iotbench.core.execution.session import SessionStrategy
from iotbench.core.model_strategies.base import ModelStrategy

__all__ = [
    "ExecutionOutcome",
    "ExecutionStrategy",
    "JdbcStrategy",
    "RestStrategy",
    "SessionStrategy",
    "create_execution_strategy",
]


def create_execution_strategy(config: AdapterConfig, model: ModelStrategy) -> ExecutionStrategy:
    """
    Factory function to create the transport for the configured execution mode.

    Args:
        config: Adapter configuration
        model: Model strategy the transport shapes statements and results with

    Returns:
        ExecutionStrategy instance

    Raises:
        ConfigurationError: If the mode is unknown or cannot serve the data model
    """
    mode = str(config.execution_mode or "").upper()

    if mode == "SESSION":
        return SessionStrategy(config, model)
    elif mode == "JDBC":
        if model.name != "tree":
            raise ConfigurationError("JDBC execution supports the tree data model only")
        return JdbcStrategy(config, model)
    elif mode == "REST":
        if model.name != "tree":
            raise ConfigurationError("REST execution supports the tree data model only")
        return RestStrategy(config, model)
    else:
        raise ConfigurationError(f"Unsupported execution mode: {config.execution_mode}")
