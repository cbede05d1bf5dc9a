import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional


class CollectorError(Exception):
    """An external tool needed to produce an input document failed."""


class Collector(ABC):
    """Base class inherited by every pipeline step that produces an input document."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly step name used in logs."""
        pass

    @property
    @abstractmethod
    def output_file(self) -> str:
        """Document file name written into the run's output directory."""
        pass

    @abstractmethod
    def collect(self, project_path: str, output_dir: str) -> Optional[Any]:
        """Returns the document, or None when this project version must be skipped."""
        pass

    def run(self, project_path: str, output_dir: str) -> Optional[Any]:
        project = os.path.basename(os.path.normpath(project_path))
        logging.info(f"{self.name} for <{project}> starts")

        data = self.collect(project_path, output_dir)
        if data is None:
            logging.warning(f"{self.name} for <{project}> produced nothing, skipping.")
            return None

        self.write(data, output_dir)
        logging.info(f"{self.name} for <{project}> ends")
        return data

    def write(self, data: Any, output_dir: str) -> str:
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, self.output_file)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        return path
