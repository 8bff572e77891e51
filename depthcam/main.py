"""
Headless runner for depthcam.

This script starts the configured camera, captures one batch of five photos,
uploads it to the depth endpoint and saves the returned depth map. Commands
are issued through a ``CommandWorker`` so capture and upload run on a
background thread, the way an interactive front end would drive them. The
core components are configurable via a YAML configuration file (see
:mod:`depthcam.config`).

Usage:

```bash
python -m depthcam.main --config config/depthcam.yaml --output depth.png
```
"""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import sys
from typing import List, Optional

from .batch.controller import BatchController
from .batch.state import BatchSnapshot
from .batch.worker import CommandWorker
from .camera.base import CaptureSession
from .camera.mock_camera import MockCamera
from .camera.rpi_camera import RpiCamera
from .config import Config
from .errors import DepthCamError
from .sync.client import UploadClient


class DepthCamApp:
    """Wires configuration, camera, controller and upload client together."""

    def __init__(self, config: Config, setup_logging: bool = True) -> None:
        self.config = config
        config.ensure_paths()
        if setup_logging:
            self._setup_logging()

        self.camera: CaptureSession = self._init_camera()
        self.client = UploadClient(timeout=config.timeout)
        self.controller = BatchController(self.camera, self.client, config.endpoint_url)
        self.controller.subscribe(self._log_snapshot)
        self.worker = CommandWorker(self.controller)

    def _setup_logging(self) -> None:
        """Configure logging to file and console."""
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(threadName)s - %(message)s'
        )
        # File handler
        fh = logging.FileHandler(self.config.log_file)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        # Console handler
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    def _init_camera(self) -> CaptureSession:
        """Instantiate the camera backend based on configuration."""
        kwargs = {'quality': self.config.jpeg_quality}
        if self.config.image_width:
            kwargs['image_width'] = self.config.image_width
        if self.config.image_height:
            kwargs['image_height'] = self.config.image_height
        if self.config.camera_backend == 'mock':
            return MockCamera(**kwargs)
        elif self.config.camera_backend == 'rpi':
            return RpiCamera(**kwargs)
        else:
            raise ValueError(f'Unknown camera backend: {self.config.camera_backend}')

    @staticmethod
    def _log_snapshot(snapshot: BatchSnapshot) -> None:
        logging.debug('Batch state %s, %d image(s)', snapshot.state.value, snapshot.count)

    def default_output_path(self) -> str:
        stamp = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')
        return os.path.join(self.config.output_dir, f'depth_{stamp}.png')

    def run(self, output_path: Optional[str] = None) -> str:
        """Capture a batch, send it, and save the depth map.

        Returns:
            The path the depth map was written to.

        Raises:
            DepthCamError: if authorization, capture or upload fails.
        """
        self.controller.start()
        self.worker.start()
        try:
            for _ in range(self.controller.buffer.capacity):
                self.worker.take_photo().result()
            depth_map = self.worker.send().result()
        finally:
            self.worker.stop()
            self.controller.stop()
            self.client.close()

        path = output_path or self.default_output_path()
        depth_map.save(path)
        logging.info('Saved %dx%d depth map to %s', depth_map.width_px, depth_map.height_px, path)
        return path


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='depthcam batch capture client')
    parser.add_argument('--config', '-c', type=str, required=True, help='Path to YAML configuration file')
    parser.add_argument('--output', '-o', type=str, default=None, help='Where to write the depth map')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = Config.from_yaml(args.config)
    app = DepthCamApp(config)
    try:
        app.run(args.output)
    except DepthCamError as exc:
        logging.error('Batch failed: %s', exc)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
