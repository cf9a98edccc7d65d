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
直接遥操作器 (Direct Teleoperator)

功能说明 (Functionality):
    通过代码(滑块、脚本、API 调用)直接设置关节目标位置,没有控制循环。
    每次调用只限幅一次、写入一次,并发出与键盘遥操作相同的事件。

    Sets joint targets directly from code (sliders, scripts, API calls), with no control
    loop. Each call clamps once, writes once and emits the same event as keyboard
    teleoperation.

使用示例 (Usage Example):
    ```python
    teleop = DirectTeleoperator(motors_bus, motor_configs)
    teleop.initialize()
    teleop.start()
    teleop.move_motor("gripper", 2500)
    teleop.set_motor_positions({"shoulder_pan": 2048, "elbow_flex": 1900})
    ```
"""

from lerobot_arm.common.teleoperators.teleoperator import Teleoperator


class DirectTeleoperator(Teleoperator):
    def start(self):
        if self.is_active:
            return
        self.is_active = True
        self._notify_state()

    def stop(self):
        if not self.is_active:
            return
        self.is_active = False
        self._notify_state()

    def set_motor_positions(self, positions: dict[str, float]) -> list:
        """Moves several joints one after another, in the order given."""
        return [self.move_motor(motor_name, position) for motor_name, position in positions.items()]
