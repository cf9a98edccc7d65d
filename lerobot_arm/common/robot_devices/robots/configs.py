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
机器人配置模块 (Robot Configuration Module)

功能说明 (Functionality):
    定义 SO-100 / SO-101 系列机械臂的配置:舵机名称与 ID、驱动方向、
    校准文件位置以及键盘遥操作的按键映射。

    Defines the configuration of the SO-100 / SO-101 arm family: motor names and ids,
    drive modes, calibration file location and keyboard teleoperation bindings.

配置层次 (Configuration Hierarchy):
    RobotConfig (基类 / Base)
    └── FeetechArmConfig (Feetech 6 自由度机械臂 / Feetech 6-DoF arm)
        ├── So100FollowerConfig / So100LeaderConfig
        └── So101FollowerConfig / So101LeaderConfig

使用示例 (Usage Example):
    ```python
    from lerobot_arm.common.robot_devices.robots.configs import So100FollowerConfig

    config = So100FollowerConfig(port="/dev/ttyACM0", id="my_arm")
    bus_config = config.make_motors_bus_config()
    ```

    命令行 (Command line):
    ```bash
    python -m lerobot_arm.scripts.calibrate --robot.type=so100_follower --robot.port=/dev/ttyACM0
    ```
"""

import abc
from dataclasses import dataclass, field
from pathlib import Path

import draccus

from lerobot_arm.common.constants import CALIBRATION_DIR
from lerobot_arm.common.robot_devices.motors.configs import FeetechMotorsBusConfig
from lerobot_arm.common.teleoperators.teleoperator import KeyBinding, MotorNormMode

# 键名使用浏览器/pynput 通用的名称 / Key names follow the common browser naming
SO100_KEYBOARD_CONTROLS = {
    # 肩部 / Shoulder
    "ArrowUp": KeyBinding("shoulder_lift", 1, "Shoulder up"),
    "ArrowDown": KeyBinding("shoulder_lift", -1, "Shoulder down"),
    "ArrowLeft": KeyBinding("shoulder_pan", -1, "Shoulder left"),
    "ArrowRight": KeyBinding("shoulder_pan", 1, "Shoulder right"),
    # WASD
    "w": KeyBinding("elbow_flex", 1, "Elbow flex"),
    "s": KeyBinding("elbow_flex", -1, "Elbow extend"),
    "a": KeyBinding("wrist_flex", -1, "Wrist down"),
    "d": KeyBinding("wrist_flex", 1, "Wrist up"),
    # 腕部旋转和夹爪 / Wrist roll and gripper
    "q": KeyBinding("wrist_roll", -1, "Wrist roll left"),
    "e": KeyBinding("wrist_roll", 1, "Wrist roll right"),
    "o": KeyBinding("gripper", 1, "Gripper open"),
    "c": KeyBinding("gripper", -1, "Gripper close"),
    # 急停 / Emergency stop
    "Escape": KeyBinding("emergency_stop", 0, "Emergency stop"),
}


@dataclass
class RobotConfig(draccus.ChoiceRegistry, abc.ABC):
    """
    机器人配置基类 (Robot Configuration Base Class)

    Abstract base class for all robot configurations, providing type registration.
    """

    @property
    def type(self) -> str:
        """返回配置类型名称 / Return configuration type name"""
        return self.get_choice_name(self.__class__)


@dataclass
class FeetechArmConfig(RobotConfig):
    """
    Feetech 机械臂配置 (Feetech Arm Configuration)

    属性说明 (Attributes):
        port (str):
            舵机总线串口 / Serial port of the motor bus

        id (str):
            机械臂标识,用于校准文件名 / Arm identifier, used as the calibration file name

        calibration_dir (Path | None):
            校准文件目录,默认为 HF_LEROBOT_HOME/calibration/{type}
            Calibration directory, defaults to HF_LEROBOT_HOME/calibration/{type}

        motors (dict[str, tuple[int, str]]):
            {舵机名称: (ID, 型号)} / {motor_name: (id, model)}

        drive_modes (list[int]):
            每个舵机的驱动方向,SO-100 全部为 0 / Drive mode per motor, all 0 on SO-100

        strict_writes (bool):
            是否要求每次写入都有确认包 / Whether every write must be acknowledged
    """

    port: str = "/dev/ttyACM0"
    id: str = "default"
    calibration_dir: Path | None = None
    motors: dict[str, tuple[int, str]] = field(
        default_factory=lambda: {
            # name: (index, model)
            "shoulder_pan": (1, "sts3215"),
            "shoulder_lift": (2, "sts3215"),
            "elbow_flex": (3, "sts3215"),
            "wrist_flex": (4, "sts3215"),
            "wrist_roll": (5, "sts3215"),
            "gripper": (6, "sts3215"),
        }
    )
    drive_modes: list[int] = field(default_factory=lambda: [0, 0, 0, 0, 0, 0])
    strict_writes: bool = False

    def __post_init__(self):
        if len(self.drive_modes) != len(self.motors):
            raise ValueError(
                f"`drive_modes` must have one entry per motor ({len(self.motors)}), but got {self.drive_modes}."
            )
        if self.calibration_dir is None:
            self.calibration_dir = CALIBRATION_DIR / self.type

    @property
    def motor_names(self) -> list[str]:
        return list(self.motors)

    @property
    def motor_ids(self) -> list[int]:
        return [idx for idx, _ in self.motors.values()]

    @property
    def norm_modes(self) -> dict[str, MotorNormMode]:
        return {
            name: MotorNormMode.RANGE_0_100 if name == "gripper" else MotorNormMode.RANGE_M100_100
            for name in self.motors
        }

    @property
    def keyboard_controls(self) -> dict[str, KeyBinding]:
        return SO100_KEYBOARD_CONTROLS

    @property
    def calibration_fpath(self) -> Path:
        return Path(self.calibration_dir) / f"{self.id}.json"

    def make_motors_bus_config(self) -> FeetechMotorsBusConfig:
        return FeetechMotorsBusConfig(
            port=self.port,
            motors=dict(self.motors),
            strict_writes=self.strict_writes,
        )


@RobotConfig.register_subclass("so100_follower")
@dataclass
class So100FollowerConfig(FeetechArmConfig):
    pass


@RobotConfig.register_subclass("so100_leader")
@dataclass
class So100LeaderConfig(FeetechArmConfig):
    pass


# SO-101 使用相同的舵机布局 / SO-101 shares the SO-100 motor layout
@RobotConfig.register_subclass("so101_follower")
@dataclass
class So101FollowerConfig(FeetechArmConfig):
    pass


@RobotConfig.register_subclass("so101_leader")
@dataclass
class So101LeaderConfig(FeetechArmConfig):
    pass
