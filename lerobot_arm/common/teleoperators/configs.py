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
遥操作器配置模块 (Teleoperator Configuration Module)

功能说明 (Functionality):
    定义遥操作策略的可选配置,通过 draccus 的 `--teleop.type=keyboard` 选择。
    Defines the teleoperation strategy configs, selected with draccus `--teleop.type=keyboard`.
"""

import abc
from dataclasses import dataclass

import draccus


@dataclass
class TeleoperatorConfig(draccus.ChoiceRegistry, abc.ABC):
    @property
    def type(self) -> str:
        """返回配置类型名称 / Return configuration type name"""
        return self.get_choice_name(self.__class__)


@TeleoperatorConfig.register_subclass("keyboard")
@dataclass
class KeyboardTeleoperatorConfig(TeleoperatorConfig):
    """
    键盘遥操作配置 (Keyboard Teleoperation Configuration)

    属性说明 (Attributes):
        step_size (int): 每个周期每个按键移动的步数 / Raw steps per key per tick
        update_rate (float): 控制循环频率(Hz) / Control loop rate (Hz)
        key_timeout_s (float): 按键状态未刷新时的失效时间 / Time after which a stale key is dropped
        stop_key (str): 急停按键 / Emergency stop key
    """

    step_size: int = 8
    update_rate: float = 60
    key_timeout_s: float = 10.0
    stop_key: str = "Escape"

    def __post_init__(self):
        if self.update_rate <= 0:
            raise ValueError(f"`update_rate` must be strictly positive, but {self.update_rate} was provided.")


@TeleoperatorConfig.register_subclass("direct")
@dataclass
class DirectTeleoperatorConfig(TeleoperatorConfig):
    pass
