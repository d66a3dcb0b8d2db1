"""
Model strategies for the IoTDB tree and table data models.
"""

from iotbench.config import AdapterConfig
from iotbench.core.errors import ConfigurationError
from iotbench.core.model_strategies.base import ModelStrategy
from iotbench.core.model_strategies.table import TableStrategy
from iotbench.core.model_strategies.tree import TreeStrategy

__all__ = [
    "ModelStrategy",
    "TreeStrategy",
    "TableStrategy",
    "create_model_strategy",
]


def create_model_strategy(config: AdapterConfig) -> ModelStrategy:
    """
    Factory function to create the strategy for the configured data model.

    Args:
        config: Adapter configuration

    Returns:
        ModelStrategy instance

    Raises:
        ConfigurationError: If the data model is not supported
    """
    data_model = str(config.data_model or "").lower()

    if data_model == "tree":
        return TreeStrategy(config)
    elif data_model == "table":
        return TableStrategy(config)
    else:
        raise ConfigurationError(f"Unsupported data model: {config.data_model}")
