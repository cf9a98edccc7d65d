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

from lerobot_arm.common.robot_devices.motors.feetech import STS_SERIES_CONTROL_TABLE
from lerobot_arm.common.robot_devices.robots.feetech_calibration import MotorCalibration
from lerobot_arm.common.teleoperators.configs import DirectTeleoperatorConfig, KeyboardTeleoperatorConfig
from lerobot_arm.common.teleoperators.direct import DirectTeleoperator
from lerobot_arm.common.teleoperators.keyboard import KeyboardTeleoperator
from lerobot_arm.common.teleoperators.teleoperator import MotorConfig, MotorNormMode, normalize_position
from lerobot_arm.common.teleoperators.utils import make_motor_configs, make_teleoperator_from_config

GOAL_ADDR = STS_SERIES_CONTROL_TABLE["Goal_Position"][0]


@pytest.fixture
def teleop(motors_bus, robot_config, clock):
    return DirectTeleoperator(motors_bus, make_motor_configs(robot_config), clock=clock)


def test_move_motor_clamps_and_writes_once(teleop, mock_port):
    teleop.get_motor_config("gripper").max_position = 3000
    event = teleop.move_motor("gripper", 3500)

    assert event.new_position == 3000
    assert event.previous_position == 2047
    assert mock_port.writes_to(6, GOAL_ADDR) == [3000]


def test_move_to_current_position_still_writes(teleop, mock_port):
    teleop.move_motor("elbow_flex", 2047)
    assert mock_port.writes_to(3, GOAL_ADDR) == [2047]


def test_set_motor_positions_keeps_order(teleop, mock_port):
    events = []
    teleop.on_change(events.append)
    teleop.set_motor_positions({"wrist_roll": 100, "shoulder_pan": 4000})

    assert [event.motor_name for event in events] == ["wrist_roll", "shoulder_pan"]
    assert [packet.motor_id for packet in mock_port.packets] == [5, 1]


def test_unknown_motor_raises(teleop):
    with pytest.raises(KeyError):
        teleop.move_motor("tail", 10)


def test_remove_listener(teleop):
    events = []
    teleop.on_change(events.append)
    teleop.remove_listener(events.append)
    teleop.move_motor("gripper", 2100)
    assert events == []


def test_start_and_stop_notify_state(teleop):
    states = []
    teleop.on_state_update(states.append)
    teleop.start()
    teleop.start()
    teleop.stop()

    assert [state.is_active for state in states] == [True, False]


def test_disconnect_closes_bus(teleop, motors_bus, mock_port):
    teleop.start()
    teleop.disconnect()
    assert not teleop.is_active
    assert not motors_bus.is_connected
    assert not mock_port.is_open


@pytest.mark.parametrize(
    "position, norm_mode, expected",
    [
        (1000, MotorNormMode.RANGE_M100_100, -100.0),
        (2000, MotorNormMode.RANGE_M100_100, 0.0),
        (3000, MotorNormMode.RANGE_M100_100, 100.0),
        (1500, MotorNormMode.RANGE_0_100, 25.0),
        (3000, MotorNormMode.RANGE_0_100, 100.0),
    ],
)
def test_normalize_position(position, norm_mode, expected):
    motor = MotorConfig(id=1, name="m", current_position=position, min_position=1000, max_position=3000, norm_mode=norm_mode)
    assert normalize_position(motor) == pytest.approx(expected)


def test_zero_width_range_normalizes_to_lower_bound():
    motor = MotorConfig(id=1, name="m", current_position=2047, min_position=2047, max_position=2047)
    assert normalize_position(motor) == -100.0
    motor.norm_mode = MotorNormMode.RANGE_0_100
    assert normalize_position(motor) == 0.0


def test_motor_configs_from_calibration(robot_config):
    calibration = {"gripper": MotorCalibration(id=6, drive_mode=0, homing_offset=0, range_min=2000, range_max=3000)}
    motor_configs = {motor.name: motor for motor in make_motor_configs(robot_config, calibration)}

    assert (motor_configs["gripper"].min_position, motor_configs["gripper"].max_position) == (2000, 3000)
    assert motor_configs["gripper"].current_position == 2500
    assert motor_configs["gripper"].norm_mode is MotorNormMode.RANGE_0_100
    assert (motor_configs["elbow_flex"].min_position, motor_configs["elbow_flex"].max_position) == (0, 4095)


def test_make_teleoperator_from_config(motors_bus, robot_config):
    keyboard = make_teleoperator_from_config(KeyboardTeleoperatorConfig(step_size=4), motors_bus, robot_config)
    assert isinstance(keyboard, KeyboardTeleoperator)
    assert keyboard.step_size == 4

    direct = make_teleoperator_from_config(DirectTeleoperatorConfig(), motors_bus, robot_config)
    assert isinstance(direct, DirectTeleoperator)
