"""
Configuration management for depthcam.

This module defines a dataclass ``Config`` that holds configuration for the
capture client. It can be loaded from a YAML file or constructed manually.
The configuration covers the depth endpoint, network timeout, camera backend
selection and frame settings, and output/log paths.

Example YAML configuration (config/depthcam.yaml):

```yaml
endpoint_url: "https://example.com/api/depth"
timeout: 30                 # seconds for the upload round trip
camera_backend: "rpi"       # "mock" on development machines
image_width: 4056
image_height: 3040
jpeg_quality: 90
output_dir: "./depthcam_data/results"
log_file: "./depthcam_data/depthcam.log"
```

Using the ``Config.from_yaml`` method simplifies loading configuration:

```python
from depthcam.config import Config
config = Config.from_yaml('config/depthcam.yaml')
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import yaml


@dataclass
class Config:
    """Configuration settings for the depthcam client."""

    endpoint_url: str
    timeout: float = 30.0  # seconds
    camera_backend: str = 'mock'
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    jpeg_quality: int = 90
    output_dir: str = './results'
    log_file: str = './depthcam.log'

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build a configuration from an already-parsed mapping.

        Raises:
            KeyError: if required keys are missing.
            ValueError: if a value is out of range.
        """
        required_keys = ['endpoint_url']
        missing = [k for k in required_keys if k not in data]
        if missing:
            raise KeyError(f'Missing required configuration keys: {missing}')

        timeout = float(data.get('timeout', 30.0))
        if timeout <= 0:
            raise ValueError(f'timeout must be positive, got {timeout}')
        backend = str(data.get('camera_backend', 'mock')).lower()
        if backend not in ('mock', 'rpi'):
            raise ValueError(f'Unknown camera backend: {backend}')

        return cls(
            endpoint_url=data['endpoint_url'],
            timeout=timeout,
            camera_backend=backend,
            image_width=data.get('image_width'),
            image_height=data.get('image_height'),
            jpeg_quality=int(data.get('jpeg_quality', 90)),
            output_dir=data.get('output_dir', './results'),
            log_file=data.get('log_file', './depthcam.log'),
            extra={k: v for k, v in data.items() if k not in cls.__annotations__},
        )

    @classmethod
    def from_yaml(cls, path: str) -> 'Config':
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: if the YAML file cannot be found.
            yaml.YAMLError: if the YAML file is invalid.
            KeyError: if required keys are missing.
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def ensure_paths(self) -> None:
        """Ensure that the output and log directories exist.

        Creates directories as needed. This method is idempotent.
        """
        if not os.path.exists(self.output_dir):
            os.makedirs(self.output_dir, exist_ok=True)

        log_dir = os.path.dirname(self.log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
