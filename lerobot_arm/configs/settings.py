# Copyright 2024 The HuggingFace Inc. team. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
用户设置模块 (User Settings Module)

功能说明 (Functionality):
    保存跨会话使用的用户设置:Hub 访问令牌、默认数据集 id、最近使用的串口。
    存储方式通过 SettingsStore 协议注入,默认使用 draccus 写入的 JSON 文件。

    Persists user settings across sessions: the Hub token, the default dataset id and the last
    used serial port. The storage is injected through the SettingsStore protocol and defaults
    to a JSON file written with draccus.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

import draccus

from lerobot_arm.common.constants import SETTINGS_PATH


@dataclass
class UserSettings:
    hf_token: str | None = None
    repo_id: str | None = None
    last_port: str | None = None
    robot_id: str | None = None


class SettingsStore(Protocol):
    def load(self) -> UserSettings: ...

    def save(self, settings: UserSettings) -> None: ...


class JsonSettingsStore:
    def __init__(self, fpath: Path | str = SETTINGS_PATH):
        self.fpath = Path(fpath)

    def load(self) -> UserSettings:
        if not self.fpath.is_file():
            return UserSettings()
        with draccus.config_type("json"):
            return draccus.parse(UserSettings, config_path=self.fpath, args=[])

    def save(self, settings: UserSettings) -> None:
        self.fpath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.fpath, "w") as f, draccus.config_type("json"):
            draccus.dump(settings, f, indent=4)
        logging.debug(f"Settings saved to {self.fpath}")


class InMemorySettingsStore:
    def __init__(self, settings: UserSettings | None = None):
        self._settings = settings if settings is not None else UserSettings()

    def load(self) -> UserSettings:
        return replace(self._settings)

    def save(self, settings: UserSettings) -> None:
        self._settings = replace(settings)
