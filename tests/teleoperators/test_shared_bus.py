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

import threading

import pytest

from lerobot_arm.common.datasets.recorder import LeRobotDatasetRecorder
from lerobot_arm.common.robot_devices.motors.feetech import (
    INST_WRITE,
    STS_SERIES_CONTROL_TABLE,
    FeetechMotorsBus,
    decode_instruction_packet,
)
from lerobot_arm.common.teleoperators.direct import DirectTeleoperator
from lerobot_arm.common.teleoperators.keyboard import KeyboardTeleoperator
from lerobot_arm.common.teleoperators.teleoperator import normalize_position
from lerobot_arm.common.teleoperators.utils import make_motor_configs
from tests.conftest import make_fast_bus_config
from tests.mocks.mock_feetech_port import MockFeetechPort

GOAL_ADDR = STS_SERIES_CONTROL_TABLE["Goal_Position"][0]


class InterleavingPort(MockFeetechPort):
    """Starts `on_first_goal_write` in a second thread while the first goal write is on the wire."""

    def __init__(self):
        super().__init__()
        self.on_first_goal_write = None
        self.thread = None
        self.blocked_while_writing = None

    def write(self, data: bytes) -> None:
        packet = decode_instruction_packet(data)
        if (
            self.thread is None
            and self.on_first_goal_write is not None
            and packet.instruction == INST_WRITE
            and packet.address == GOAL_ADDR
        ):
            self.thread = threading.Thread(target=self.on_first_goal_write)
            self.thread.start()
            self.thread.join(0.05)
            self.blocked_while_writing = self.thread.is_alive()
        super().write(data)


@pytest.fixture
def port():
    return InterleavingPort()


@pytest.fixture
def bus(robot_config, port):
    bus = FeetechMotorsBus(make_fast_bus_config(robot_config), port_handler=port)
    bus.connect()
    yield bus
    if bus.is_connected:
        bus.disconnect()


def test_teleoperators_share_the_bus_lock(bus, robot_config):
    keyboard = KeyboardTeleoperator(bus, make_motor_configs(robot_config), robot_config.keyboard_controls)
    direct = DirectTeleoperator(bus, make_motor_configs(robot_config))

    assert keyboard._bus_lock is bus.lock
    assert direct._bus_lock is bus.lock


def test_keyboard_and_direct_writes_are_serialized(bus, port, robot_config):
    keyboard = KeyboardTeleoperator(bus, make_motor_configs(robot_config), robot_config.keyboard_controls)
    direct = DirectTeleoperator(bus, make_motor_configs(robot_config))
    direct.start()

    recorder = LeRobotDatasetRecorder([keyboard, direct], fps=30)
    recorder.start()

    port.on_first_goal_write = lambda: direct.move_motor("gripper", 3000)
    keyboard.update_key_state("ArrowRight", True)

    assert keyboard.tick() == ["shoulder_pan"]
    port.thread.join(timeout=5)
    recorder.stop()

    # 键盘写入完成之前,直接控制的写入必须等待 / The direct write waits for the keyboard write
    assert port.blocked_while_writing is True
    assert not port.thread.is_alive()

    frames = recorder.episodes[0].frames
    assert len(frames) == 2
    assert frames[0].timestamp <= frames[1].timestamp
    gripper = direct.get_motor_config("gripper")
    assert frames[1].observation_state[-1] == pytest.approx(normalize_position(gripper, 3000))
    assert port.writes_to(1, GOAL_ADDR) == [2047 + keyboard.step_size]
    assert port.writes_to(6, GOAL_ADDR) == [3000]
