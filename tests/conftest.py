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

import pytest

from lerobot_arm.common.robot_devices.motors.configs import FeetechMotorsBusConfig
from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.robot_devices.robots.configs import So100FollowerConfig
from tests.mocks.mock_feetech_port import MockFeetechPort


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def robot_config(tmp_path):
    return So100FollowerConfig(port="/dev/mock", id="test_arm", calibration_dir=tmp_path / "calibration")


@pytest.fixture
def mock_port():
    return MockFeetechPort()


def make_fast_bus_config(robot_config, **kwargs) -> FeetechMotorsBusConfig:
    return FeetechMotorsBusConfig(
        port=robot_config.port,
        motors=dict(robot_config.motors),
        read_timeout_ms=5,
        write_to_read_delay_s=0,
        retry_delay_s=0,
        inter_motor_delay_s=0,
        ack_timeout_ms=5,
        **kwargs,
    )


@pytest.fixture
def motors_bus(robot_config, mock_port):
    bus = FeetechMotorsBus(make_fast_bus_config(robot_config), port_handler=mock_port)
    bus.connect()
    yield bus
    if bus.is_connected:
        bus.disconnect()


@pytest.fixture
def clock():
    return FakeClock()
