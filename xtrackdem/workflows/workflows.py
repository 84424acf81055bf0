# Copyright (c) 2024 xTrackDEM developers
#
# This file is part of the xTrackDEM project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Workflow class
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

import numpy as np
import yaml  # type: ignore
from yaml.dumper import SafeDumper  # type: ignore

from xtrackdem.workflows.schemas import validate_configuration


class Workflows(ABC):
    """
    Abstract Class for workflows
    """

    schema: Dict[str, Any]

    def __init__(self, user_config: str | Dict[str, Any]) -> None:
        """
        Initialize the workflows class
        :param user_config: str path to a config file or dict as config
        :return: None
        """

        # Load configuration
        if isinstance(user_config, str):
            if not os.path.isfile(user_config):
                raise FileNotFoundError(f"{user_config} does not exist")
            self.config_path = user_config
            config_not_verify = self.load_config()
        elif isinstance(user_config, dict):
            config_not_verify = user_config
        else:
            raise ValueError(
                "The configuration should be provided either as a path to the configuration file"
                " or as a dictionary containing the configuration details."
            )

        self.config = validate_configuration(config_not_verify, self.schema)

        self.outputs_folder = Path(self.config["outputs"]["path"])
        self.outputs_folder.mkdir(parents=True, exist_ok=True)
        logging.info(f"Outputs will be saved at {self.outputs_folder.absolute()}")

        Path(self.outputs_folder / "tables").mkdir(parents=True, exist_ok=True)

    class NoAliasDumper(SafeDumper):  # type: ignore
        """
        NoAliasDumper to avoid id in YAML file
        """

        def ignore_aliases(self, data: Any) -> bool:
            """
            avoid id in YAML file
            """
            return True

    def load_config(self) -> Dict[str, Any]:
        """
        Load a configuration file
        :return: Configuration dictionary
        """
        with open(self.config_path) as f:
            return yaml.safe_load(f)

    def floats_process(self, dict_with_floats: Any) -> Any:
        """
        Round all floats present in a dictionary to four decimal places, and cast numpy scalars and tuples to
        builtin types that can be written in YAML
        :param dict_with_floats: Dictionary with float
        :return: Dictionary with floats
        """
        if isinstance(dict_with_floats, dict):
            return {k: self.floats_process(v) for k, v in dict_with_floats.items()}
        elif isinstance(dict_with_floats, (list, tuple)):
            return [self.floats_process(elem) for elem in dict_with_floats]
        elif isinstance(dict_with_floats, (bool, np.bool_)):
            return bool(dict_with_floats)
        elif isinstance(dict_with_floats, (np.integer,)):
            return int(dict_with_floats)
        elif isinstance(dict_with_floats, (float, np.floating)):
            return round(float(dict_with_floats), 4)
        else:
            return dict_with_floats

    def save_yaml(self, data: Dict[str, Any], file_name: str) -> Path:
        """
        Save a dictionary as a YAML file in the outputs folder
        :param data: Dictionary to save
        :param file_name: Name of the YAML file
        :return: Path of the YAML file
        """
        filename = self.outputs_folder / file_name
        with filename.open(mode="w", encoding="utf-8") as f:
            yaml.dump(self.floats_process(data), f, Dumper=self.NoAliasDumper, sort_keys=False)
        return filename

    @abstractmethod
    def run(self) -> Any:
        """
        Run the workflow
        """
