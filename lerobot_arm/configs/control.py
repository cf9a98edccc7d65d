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
控制流程配置模块 (Control Pipeline Configuration Module)

功能说明 (Functionality):
    定义命令行脚本的流程配置:校准、遥操作、录制数据集、释放舵机。
    这些配置由 `draccus.wrap()` 从命令行参数解析。

    Defines the pipeline configs of the command line scripts: calibration, teleoperation,
    dataset recording and motor release. They are parsed from the command line by `draccus.wrap()`.

使用方式 (Usage):
    ```bash
    python -m lerobot_arm.scripts.record \
        --robot.type=so100_follower \
        --robot.port=/dev/ttyACM0 \
        --teleop.type=keyboard \
        --dataset.repo_id=user/so100_cube \
        --dataset.single_task="Pick up the cube"
    ```
"""

from dataclasses import dataclass, field
from pathlib import Path

from lerobot_arm.common.robot_devices.robots.configs import RobotConfig, So100FollowerConfig
from lerobot_arm.common.teleoperators.configs import KeyboardTeleoperatorConfig, TeleoperatorConfig


@dataclass
class CalibrateConfig:
    robot: RobotConfig = field(default_factory=So100FollowerConfig)
    # 记录活动范围时的刷新频率 / Refresh rate while recording the range of motion
    record_rate: float = 20
    # 写入归零偏移后等待舵机稳定的时间 / Settle time after writing the homing offsets
    settle_time_s: float = 1.0


@dataclass
class TeleoperateConfig:
    robot: RobotConfig = field(default_factory=So100FollowerConfig)
    teleop: TeleoperatorConfig = field(default_factory=KeyboardTeleoperatorConfig)
    # 为 None 时一直运行,直到按下急停键 / Runs until the stop key when None
    teleop_time_s: float | None = None
    # 终端显示关节位置的频率 / Rate at which joint positions are printed
    display_rate: float = 5


@dataclass
class DatasetRecordConfig:
    """
    数据集录制配置 (Dataset Recording Configuration)

    属性说明 (Attributes):
        repo_id (str): 数据集 id,格式为 `{hf_username}/{dataset_name}`
                       Dataset identifier, `{hf_username}/{dataset_name}` by convention
        single_task (str): 任务描述 / Task description, e.g. "Pick up the cube"
        fps (int): 重采样帧率 / Resampling rate
        num_episodes (int): 录制的 Episode 数量 / Number of episodes to record
        episode_time_s (float): 每个 Episode 的时长,提前按回车可结束
                                Duration of each episode, Enter ends it earlier
        root (Path | None): 本地保存目录,默认 `HF_LEROBOT_HOME / repo_id`
                            Local directory, `HF_LEROBOT_HOME / repo_id` by default
        push_to_hub (bool): 是否上传到 Hugging Face Hub / Upload to the Hugging Face Hub
        private (bool): 创建私有仓库 / Create a private repository
        zip_path (Path | None): 同时导出 ZIP 压缩包的路径 / Also write a ZIP archive there
    """

    repo_id: str
    single_task: str = ""
    fps: int = 30
    num_episodes: int = 1
    episode_time_s: float = 60
    root: Path | None = None
    push_to_hub: bool = False
    private: bool = False
    license: str | None = "apache-2.0"
    zip_path: Path | None = None

    def __post_init__(self):
        if self.fps <= 0:
            raise ValueError(f"`fps` must be strictly positive, but {self.fps} was provided.")
        if self.num_episodes < 1:
            raise ValueError(f"`num_episodes` must be at least 1, but {self.num_episodes} was provided.")


@dataclass
class RecordConfig:
    robot: RobotConfig
    dataset: DatasetRecordConfig
    teleop: TeleoperatorConfig = field(default_factory=KeyboardTeleoperatorConfig)


@dataclass
class ReleaseMotorsConfig:
    robot: RobotConfig = field(default_factory=So100FollowerConfig)
    # 为空时释放所有舵机 / Releases every motor when empty
    motor_ids: list[int] = field(default_factory=list)

    def __post_init__(self):
        unknown = set(self.motor_ids) - set(self.robot.motor_ids)
        if unknown:
            raise ValueError(
                f"Motor ids {sorted(unknown)} are not part of the robot (expected a subset of {self.robot.motor_ids})."
            )
