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
from lerobot_arm.common.robot_devices.motors.feetech import (
    INST_READ,
    INST_WRITE,
    STS_SERIES_CONTROL_TABLE,
    FeetechMotorsBus,
    calculate_checksum,
    decode_instruction_packet,
    decode_status_packet,
    encode_read_packet,
    encode_write_packet,
)
from lerobot_arm.common.robot_devices.utils import (
    ProtocolError,
    RobotDeviceAlreadyConnectedError,
    RobotDeviceNotConnectedError,
    TransportError,
)
from tests.conftest import make_fast_bus_config
from tests.mocks.mock_feetech_port import make_status_packet

GOAL_ADDR = STS_SERIES_CONTROL_TABLE["Goal_Position"][0]
HOMING_ADDR = STS_SERIES_CONTROL_TABLE["Homing_Offset"][0]


def test_read_packet_layout():
    packet = encode_read_packet(1, 56, 2)
    assert packet == bytes([0xFF, 0xFF, 0x01, 0x04, 0x02, 0x38, 0x02, 0xBE])


def test_write_packet_layout():
    packet = encode_write_packet(1, 42, 2048, 2)
    body = bytes([0x01, 0x05, 0x03, 0x2A, 0x00, 0x08])
    assert packet == bytes([0xFF, 0xFF]) + body + bytes([calculate_checksum(body)])


def test_checksum_wraps_to_one_byte():
    assert calculate_checksum([0xFF, 0xFF, 0xFF]) == (~(0xFF * 3)) & 0xFF
    assert 0 <= calculate_checksum(range(200)) <= 0xFF


def test_write_packet_rejects_oversized_value():
    with pytest.raises(ValueError):
        encode_write_packet(1, 42, 70000, 2)


def test_instruction_packet_is_decoded():
    packet = decode_instruction_packet(encode_write_packet(3, 42, 1000, 2))
    assert packet.motor_id == 3
    assert packet.instruction == INST_WRITE
    assert packet.address == 42
    assert int.from_bytes(packet.params, "little") == 1000


@pytest.mark.parametrize("motor_id", [0, 1, 6, 253, 254])
@pytest.mark.parametrize("address", [5, 31, 42, 56])
@pytest.mark.parametrize("value, size", [(0, 1), (1, 1), (255, 1), (0, 2), (2047, 2), (4095, 2), (65535, 2)])
def test_write_packets_decode_for_every_id_address_and_width(motor_id, address, value, size):
    packet = encode_write_packet(motor_id, address, value, size)

    assert len(packet) == 7 + size
    assert packet[3] == size + 3
    assert packet[-1] == calculate_checksum(packet[2:-1])

    decoded = decode_instruction_packet(packet)
    assert decoded.motor_id == motor_id
    assert decoded.instruction == INST_WRITE
    assert decoded.address == address
    assert decoded.params == value.to_bytes(size, "little")


@pytest.mark.parametrize("motor_id", [0, 1, 6, 253, 254])
@pytest.mark.parametrize("address, size", [(5, 1), (40, 1), (42, 2), (56, 2)])
def test_read_packets_decode_for_every_id_and_register(motor_id, address, size):
    packet = encode_read_packet(motor_id, address, size)

    assert packet[-1] == calculate_checksum(packet[2:-1])
    decoded = decode_instruction_packet(packet)
    assert (decoded.motor_id, decoded.instruction, decoded.address) == (motor_id, INST_READ, address)
    assert decoded.params == bytes([size])


def test_status_packet_returns_data():
    assert decode_status_packet(make_status_packet(2, b"\x00\x08"), 2) == b"\x00\x08"


def test_status_packet_ignores_trailing_bytes():
    assert decode_status_packet(make_status_packet(2, b"\x01\x02") + b"\xaa\xbb", 2) == b"\x01\x02"


@pytest.mark.parametrize(
    "packet, reason",
    [
        (b"\xff\xff\x01", "too short"),
        (b"\xfe\xff\x01\x02\x00\xfc", "Malformed header"),
        (make_status_packet(1)[:-1] + b"\x00", "Checksum"),
        (make_status_packet(3), "expected motor 1"),
        (make_status_packet(1, error=0b100), "error status"),
    ],
)
def test_status_packet_validation(packet, reason):
    with pytest.raises(ProtocolError, match=reason):
        decode_status_packet(packet, 1)


def test_connect_twice_raises(motors_bus):
    with pytest.raises(RobotDeviceAlreadyConnectedError):
        motors_bus.connect()


def test_read_requires_connection(robot_config, mock_port):
    bus = FeetechMotorsBus(make_fast_bus_config(robot_config), port_handler=mock_port)
    with pytest.raises(RobotDeviceNotConnectedError):
        bus.read_position(1)


def test_read_position(motors_bus, mock_port):
    mock_port.motors[2].raw_position = 1234
    assert motors_bus.read_position(2) == 1234
    assert mock_port.num_reads == 1


def test_read_retries_after_dropped_reply(motors_bus, mock_port):
    mock_port.motors[1].raw_position = 3000
    mock_port.drop_replies[1] = 2
    assert motors_bus.read_position(1) == 3000
    assert mock_port.num_reads == 3


def test_read_retries_after_error_reply(motors_bus, mock_port):
    mock_port.error_replies[4] = 1
    assert motors_bus.read_position(4) == 2047
    assert mock_port.num_reads == 2


def test_read_returns_none_when_retries_exhausted(motors_bus, mock_port):
    mock_port.drop_replies[1] = 3
    assert motors_bus.read_position(1) is None
    assert mock_port.num_reads == 3


def test_stale_bytes_are_drained_before_each_attempt(motors_bus, mock_port):
    mock_port.motors[1].raw_position = 100
    mock_port.inject_stale(make_status_packet(1, (999).to_bytes(2, "little")))
    assert motors_bus.read_position(1) == 100


def test_read_all_positions_uses_fallback(motors_bus, mock_port):
    for motor_id, motor in mock_port.motors.items():
        motor.raw_position = motor_id * 100
    mock_port.silent_ids.add(3)

    assert motors_bus.read_all_positions() == [100, 200, 2047, 400, 500, 600]


def test_transport_error_propagates(motors_bus, mock_port):
    mock_port.close()
    with pytest.raises(TransportError):
        motors_bus.read_position(1)
    with pytest.raises(TransportError):
        motors_bus.write_goal_position(1, 100)


def test_write_clamps_to_resolution(motors_bus, mock_port):
    motors_bus.write_goal_position(1, 5000)
    motors_bus.write_goal_position(1, -20)
    assert mock_port.writes_to(1, GOAL_ADDR) == [4095, 0]


def test_write_is_sent_once_without_ack(motors_bus, mock_port):
    mock_port.silent_ids.add(5)
    motors_bus.write_goal_position(5, 1000)
    assert mock_port.writes_to(5, GOAL_ADDR) == [1000]


def test_strict_write_raises_without_ack(robot_config, mock_port):
    bus = FeetechMotorsBus(make_fast_bus_config(robot_config, strict_writes=True), port_handler=mock_port)
    bus.connect()
    bus.write_goal_position(5, 1000)

    mock_port.silent_ids.add(5)
    with pytest.raises(ProtocolError, match="not acknowledged"):
        bus.write_goal_position(5, 1000)


def test_homing_offset_round_trip(motors_bus, mock_port):
    motors_bus.write_homing_offset(2, -300)
    assert mock_port.writes_to(2, HOMING_ADDR) == [(1 << 11) | 300]
    assert motors_bus.read_register(2, "Homing_Offset") == -300


def test_release_and_lock_motors(motors_bus, mock_port):
    motors_bus.release_motors([1, 2])
    assert mock_port.motors[1].get("Torque_Enable") == 0
    assert mock_port.motors[2].get("Torque_Enable") == 0
    assert mock_port.motors[3].get("Torque_Enable") == 1

    motors_bus.lock_motors()
    assert all(motor.get("Torque_Enable") == 1 for motor in mock_port.motors.values())


def test_unknown_register_raises(motors_bus):
    with pytest.raises(ValueError, match="Unknown register"):
        motors_bus.read_register(1, "Not_A_Register")


def test_find_motor_indices(motors_bus):
    assert motors_bus.find_motor_indices(possible_ids=range(10), num_retry=1) == [1, 2, 3, 4, 5, 6]


def test_read_packets_use_read_instruction(motors_bus, mock_port):
    motors_bus.read_position(6)
    assert mock_port.packets[-1].instruction == INST_READ
    assert mock_port.packets[-1].address == STS_SERIES_CONTROL_TABLE["Present_Position"][0]


def test_duplicate_ids_are_rejected():
    with pytest.raises(ValueError, match="unique"):
        FeetechMotorsBusConfig(port="/dev/null", motors={"a": (1, "sts3215"), "b": (1, "sts3215")})
