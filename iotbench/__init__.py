"""
IoTDB benchmark adapter.
"""

from iotbench.config import AdapterConfig, Settings
from iotbench.core.adapter import IoTDBAdapter

__version__ = "0.1.0"

__all__ = ["AdapterConfig", "IoTDBAdapter", "Settings", "__version__"]
