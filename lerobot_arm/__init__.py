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
lerobot_arm 库的主初始化文件
Main initialization file for the lerobot_arm library

功能说明 (Functionality):
    列出库中可用的机器人、舵机、遥操作器和相机类型,反映库的当前状态。
    这里不导入任何重量级依赖,以保证访问这些变量足够快。
    Lists the robots, motors, teleoperators and cameras available in the library. Heavy
    dependencies are not imported here so these variables stay cheap to access.

使用示例 (Example):
    ```python
        import lerobot_arm
        print(lerobot_arm.available_robots)
        print(lerobot_arm.available_motors)
        print(lerobot_arm.available_teleoperators)
    ```

添加新组件 (Adding new components):
    实现新的机器人配置时,在 `RobotConfig` 中注册子类并更新 `available_robots`。
    When implementing a new robot config, register it on `RobotConfig` and update `available_robots`.
"""

from lerobot_arm.__version__ import __version__  # noqa: F401

available_robots = [
    "so100_follower",
    "so100_leader",
    "so101_follower",
    "so101_leader",
]

available_motors = [
    "sts3215",
]

available_teleoperators = [
    "keyboard",
    "direct",
]

available_cameras = [
    "opencv",
]
