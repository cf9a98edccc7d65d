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
Feetech 舵机总线控制模块 (Feetech Motor Bus Control Module)

功能说明 (Functionality):
    实现 Feetech STS3215 系列舵机的串口协议和寄存器读写。

    主要功能:
    1. 数据包编解码 (Packet Codec): 指令包/状态包的组包、校验和与解析
    2. 寄存器读写 (Register Access): 带重试的读取和带确认的写入
    3. 错误处理 (Error Handling): 读取失败时重试,重试耗尽后退回到中位值

    Implements the serial protocol and register access of Feetech STS3215 series motors.

    Key features:
    1. Packet Codec: framing, checksum and parsing of instruction and status packets
    2. Register Access: reads with retries, writes with a best-effort acknowledgement
    3. Error Handling: failed reads are retried, then degrade to the mid-range value

数据包格式 (Packet Format):
    指令包 / Instruction packet:
        [0xFF, 0xFF, id, length, instruction, address, data..., checksum]
    状态包 / Status packet:
        [0xFF, 0xFF, id, length, error, data..., checksum]

    length = 其后字节数(含校验和) / number of bytes that follow it, checksum included
    checksum = ~(id + length + instruction + address + Σdata) & 0xFF
    多字节数据为小端序 / Multi-byte data is little endian

使用示例 (Usage Example):
    ```python
    from lerobot_arm.common.robot_devices.motors.configs import FeetechMotorsBusConfig
    from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus

    config = FeetechMotorsBusConfig(
        port="/dev/ttyACM0",
        motors={"shoulder_pan": (1, "sts3215"), "gripper": (6, "sts3215")},
    )
    motors_bus = FeetechMotorsBus(config)
    motors_bus.connect()

    position = motors_bus.read_position(1)  # 原始步数或 None / raw steps or None
    motors_bus.write_goal_position(1, position + 30)

    motors_bus.disconnect()
    ```
"""

import enum
import logging
import threading
import time
from copy import deepcopy
from dataclasses import dataclass

import tqdm

from lerobot_arm.common.robot_devices.motors.configs import FeetechMotorsBusConfig
from lerobot_arm.common.robot_devices.motors.serial_port import MotorsPort, SerialPortHandler
from lerobot_arm.common.robot_devices.utils import (
    ProtocolError,
    ReadTimeoutError,
    RobotDeviceAlreadyConnectedError,
    RobotDeviceNotConnectedError,
)
from lerobot_arm.common.utils.encoding_utils import decode_sign_magnitude, encode_sign_magnitude
from lerobot_arm.common.utils.utils import capture_timestamp_utc

logger = logging.getLogger(__name__)

HEADER = bytes([0xFF, 0xFF])
INST_READ = 0x02
INST_WRITE = 0x03
BROADCAST_ID = 0xFE
MAX_ID_RANGE = 252

# 状态包最短长度: 帧头(2) + id + length + error + checksum
# Shortest status packet: header(2) + id + length + error + checksum
MIN_STATUS_PACKET_LENGTH = 6

# https://files.waveshare.com/upload/2/27/Communication_Protocol_User_Manual-EN%28191218-0923%29.pdf
# data_name: (address, size_byte)
STS_SERIES_CONTROL_TABLE = {
    "Model": (3, 2),
    "ID": (5, 1),
    "Baud_Rate": (6, 1),
    "Return_Delay": (7, 1),
    "Response_Status_Level": (8, 1),
    "Min_Position_Limit": (9, 2),
    "Max_Position_Limit": (11, 2),
    "Max_Temperature_Limit": (13, 1),
    "Max_Voltage_Limit": (14, 1),
    "Min_Voltage_Limit": (15, 1),
    "Max_Torque_Limit": (16, 2),
    "P_Coefficient": (21, 1),
    "D_Coefficient": (22, 1),
    "I_Coefficient": (23, 1),
    "Minimum_Startup_Force": (24, 2),
    "CW_Dead_Zone": (26, 1),
    "CCW_Dead_Zone": (27, 1),
    "Protection_Current": (28, 2),
    "Angular_Resolution": (30, 1),
    "Homing_Offset": (31, 2),
    "Operating_Mode": (33, 1),
    "Torque_Enable": (40, 1),
    "Acceleration": (41, 1),
    "Goal_Position": (42, 2),
    "Goal_Time": (44, 2),
    "Goal_Speed": (46, 2),
    "Torque_Limit": (48, 2),
    "Lock": (55, 1),
    "Present_Position": (56, 2),
    "Present_Speed": (58, 2),
    "Present_Load": (60, 2),
    "Present_Voltage": (62, 1),
    "Present_Temperature": (63, 1),
    "Status": (65, 1),
    "Moving": (66, 1),
    "Present_Current": (69, 2),
}

MODEL_CONTROL_TABLE = {
    "sts_series": STS_SERIES_CONTROL_TABLE,
    "sts3215": STS_SERIES_CONTROL_TABLE,
}

MODEL_RESOLUTION = {
    "sts_series": 4096,
    "sts3215": 4096,
}

# 使用符号-幅值编码的寄存器: 符号位索引
# Registers stored in sign-magnitude: index of the sign bit
MODEL_ENCODING_TABLE = {
    "sts_series": {"Homing_Offset": 11, "Goal_Speed": 15, "Present_Speed": 15},
    "sts3215": {"Homing_Offset": 11, "Goal_Speed": 15, "Present_Speed": 15},
}

NUM_READ_RETRY = 3


class TorqueMode(enum.Enum):
    ENABLED = 1
    DISABLED = 0


@dataclass(frozen=True)
class InstructionPacket:
    motor_id: int
    instruction: int
    address: int
    params: bytes


def calculate_checksum(body) -> int:
    return ~sum(body) & 0xFF


def encode_instruction_packet(motor_id: int, instruction: int, address: int, params=b"") -> bytes:
    """Frames an instruction with its header, length byte and checksum."""
    if not 0 <= motor_id <= BROADCAST_ID:
        raise ValueError(f"Motor id must be in [0, {BROADCAST_ID}], but {motor_id} was provided.")
    params = bytes(params)
    # instruction + address + params + checksum
    length = len(params) + 3
    body = bytes([motor_id, length, instruction, address]) + params
    return HEADER + body + bytes([calculate_checksum(body)])


def encode_read_packet(motor_id: int, address: int, size: int) -> bytes:
    return encode_instruction_packet(motor_id, INST_READ, address, [size])


def encode_write_packet(motor_id: int, address: int, value: int, size: int) -> bytes:
    if not 0 <= value < 256**size:
        raise ValueError(f"Value {value} does not fit in {size} byte(s).")
    return encode_instruction_packet(motor_id, INST_WRITE, address, value.to_bytes(size, "little"))


def decode_instruction_packet(packet: bytes) -> InstructionPacket:
    """
    解析指令包 (Parse an instruction packet)

    用于模拟总线和测试,舵机端收到的正是这种数据包。
    Used by simulated buses and tests: this is what the motor side receives.
    """
    packet = bytes(packet)
    if len(packet) < 7:
        raise ProtocolError(f"Instruction packet too short ({len(packet)} bytes): {packet.hex()}")
    if packet[:2] != HEADER:
        raise ProtocolError(f"Malformed header: {packet[:2].hex()}")

    motor_id, length = packet[2], packet[3]
    end = 4 + length
    if length < 3 or len(packet) < end:
        raise ProtocolError(f"Instruction packet truncated: length byte {length}, got {len(packet)} bytes")

    body = packet[2 : end - 1]
    if calculate_checksum(body) != packet[end - 1]:
        raise ProtocolError(f"Checksum mismatch in instruction packet {packet[:end].hex()}")

    return InstructionPacket(motor_id, packet[4], packet[5], packet[6 : end - 1])


def decode_status_packet(packet: bytes, expected_id: int) -> bytes:
    """
    解析状态包 (Parse a status packet)

    功能说明 (Functionality):
        校验帧头、长度、校验和、舵机 ID 和错误字节,返回数据字节。
        Validates header, length, checksum, motor id and error byte, then returns the data
        bytes. Bytes after the packet are ignored.

    异常 (Raises):
        ProtocolError: 数据包过短、帧头错误、校验和错误、ID 不匹配或错误字节非零
                       packet too short, bad header, bad checksum, id mismatch or non-zero error
    """
    packet = bytes(packet)
    if len(packet) < MIN_STATUS_PACKET_LENGTH:
        raise ProtocolError(f"Status packet too short ({len(packet)} bytes): {packet.hex()}")
    if packet[:2] != HEADER:
        raise ProtocolError(f"Malformed header: {packet[:2].hex()}")

    motor_id, length = packet[2], packet[3]
    end = 4 + length
    if length < 2 or len(packet) < end:
        raise ProtocolError(f"Status packet truncated: length byte {length}, got {len(packet)} bytes")

    body = packet[2 : end - 1]
    if calculate_checksum(body) != packet[end - 1]:
        raise ProtocolError(f"Checksum mismatch in status packet {packet[:end].hex()}")
    if motor_id != expected_id:
        raise ProtocolError(f"Reply from motor {motor_id}, expected motor {expected_id}")

    error = packet[4]
    if error != 0:
        raise ProtocolError(f"Motor {motor_id} reported error status 0b{error:08b}")

    return packet[5 : end - 1]


def get_log_name(var_name, fn_name, data_name, motor_id):
    return f"{var_name}_{fn_name}_{data_name}_{motor_id}"


class FeetechMotorsBus:
    """
    Feetech 舵机总线管理类 (Feetech Motor Bus Manager Class)

    功能说明 (Functionality):
        管理连接到一个串口的多个 Feetech 舵机。所有访问都是顺序的:
        一次只有一个请求在总线上。每次读写都持有 `self.lock`,调用方可以持有同一把锁,
        让多个操作成为一个原子序列。

        Manages several Feetech motors connected to one serial port. Access is strictly
        sequential: at most one request is in flight on the bus. Every read and write holds
        `self.lock`, and callers may hold the same lock to make a sequence of operations atomic.

    核心特性 (Core Features):
        1. 读取重试 (Read Retries): 每次尝试前清空残留字节,重试耗尽返回 None
        2. 乐观写入 (Optimistic Writes): 发送一次,尽力读取确认包
        3. 严格模式 (Strict Mode): `strict_writes=True` 时缺失确认会抛出异常
        4. 性能日志 (Performance Logging): 每次读写的耗时和时间戳记录在 `self.logs`

    属性说明 (Attributes):
        port (str): 串口路径 / Serial port path
        motors (dict[str, tuple[int, str]]): {舵机名称: (ID, 型号)} / {motor_name: (id, model)}
        port_handler (MotorsPort | None): 传输层 / Transport
        is_connected (bool): 是否已连接 / Whether connected
        logs (dict): 性能日志数据 / Performance log data

    串口查找 (Port Discovery):
        ```bash
        python -m lerobot_arm.scripts.find_motors_bus_port
        ```
    """

    def __init__(
        self,
        config: FeetechMotorsBusConfig,
        port_handler: MotorsPort | None = None,
    ):
        self.config = config
        self.port = config.port
        self.motors = config.motors

        self.model_ctrl_table = deepcopy(MODEL_CONTROL_TABLE)
        self.model_resolution = deepcopy(MODEL_RESOLUTION)
        self.model_encoding_table = deepcopy(MODEL_ENCODING_TABLE)

        # 可注入的传输层(测试时使用模拟总线) / Injectable transport (tests use a simulated bus)
        self.port_handler = port_handler
        self._owns_port_handler = port_handler is None
        self.is_connected = False
        self.logs = {}
        # 同一总线上的所有调用方共享此锁 / Shared by every caller of this bus
        self.lock = threading.RLock()

    def connect(self):
        if self.is_connected:
            raise RobotDeviceAlreadyConnectedError(
                f"FeetechMotorsBus({self.port}) is already connected. Do not call `motors_bus.connect()` twice."
            )

        if self._owns_port_handler:
            port_handler = SerialPortHandler(self.port, self.config.baudrate)
            try:
                port_handler.open()
            except ConnectionError:
                logger.error(
                    "Try running `python -m lerobot_arm.scripts.find_motors_bus_port` to make sure you are using the correct port."
                )
                raise
            self.port_handler = port_handler

        self.is_connected = True

    def disconnect(self):
        if not self.is_connected:
            raise RobotDeviceNotConnectedError(
                f"FeetechMotorsBus({self.port}) is not connected. Try running `motors_bus.connect()` first."
            )

        if self.port_handler is not None:
            self.port_handler.close()
            if self._owns_port_handler:
                self.port_handler = None

        self.is_connected = False

    def __del__(self):
        if getattr(self, "is_connected", False):
            self.disconnect()

    @property
    def motor_names(self) -> list[str]:
        return list(self.motors.keys())

    @property
    def motor_models(self) -> list[str]:
        return [model for _, model in self.motors.values()]

    @property
    def motor_indices(self) -> list[int]:
        return [idx for idx, _ in self.motors.values()]

    def get_motor_model(self, motor_id: int) -> str:
        for idx, model in self.motors.values():
            if idx == motor_id:
                return model
        # 未配置的 ID 按 STS 系列处理(例如扫描总线时)
        # Ids outside the config are treated as STS series (e.g. while scanning the bus)
        return "sts_series"

    def get_resolution(self, motor_id: int) -> int:
        return self.model_resolution[self.get_motor_model(motor_id)]

    def get_fallback_position(self, motor_id: int) -> int:
        """Mid-range value substituted for a position that could not be read."""
        return (self.get_resolution(motor_id) - 1) // 2

    def _check_connected(self):
        if not self.is_connected:
            raise RobotDeviceNotConnectedError(
                f"FeetechMotorsBus({self.port}) is not connected. You need to run `motors_bus.connect()`."
            )

    def _get_register(self, motor_id: int, data_name: str) -> tuple[int, int]:
        model = self.get_motor_model(motor_id)
        if data_name not in self.model_ctrl_table[model]:
            raise ValueError(f"Unknown register '{data_name}' for model '{model}'.")
        return self.model_ctrl_table[model][data_name]

    def drain(self) -> int:
        """Discards bytes left over from a previous exchange without blocking."""
        drained = 0
        while True:
            try:
                stale = self.port_handler.read(0)
            except ReadTimeoutError:
                break
            if not stale:
                break
            drained += len(stale)
        if drained:
            logger.debug(f"Drained {drained} stale byte(s) from {self.port}")
        return drained

    def _read_reply(self, expected_length: int, timeout_ms: int) -> bytes:
        deadline = time.perf_counter() + timeout_ms / 1000
        buffer = bytearray()
        while len(buffer) < expected_length:
            remaining_ms = max(0, int((deadline - time.perf_counter()) * 1000))
            try:
                buffer.extend(self.port_handler.read(remaining_ms))
            except ReadTimeoutError:
                break
            if remaining_ms == 0:
                break
        return bytes(buffer)

    def _parse_reply(self, reply: bytes, motor_id: int) -> bytes:
        start = reply.find(HEADER)
        if start < 0:
            raise ProtocolError(f"No status packet from motor {motor_id} in {reply.hex() or 'empty reply'}")
        return decode_status_packet(reply[start:], motor_id)

    def read_register(self, motor_id: int, data_name: str, num_retry: int | None = None) -> int | None:
        """
        读取单个舵机寄存器 (Read a Single Motor Register)

        功能说明 (Functionality):
            每次尝试: 清空残留字节 → 发送读取指令 → 短暂等待 → 带超时读取应答。
            所有尝试失败后记录警告并返回 None。端口错误(TransportError)直接抛出。

            Each attempt drains stale bytes, sends the READ packet, waits briefly, then reads
            the reply with a timeout. When every attempt fails a warning is logged and None is
            returned. Port errors (TransportError) propagate.

        参数说明 (Parameters):
            motor_id (int): 舵机 ID / Motor id
            data_name (str): 控制表中的寄存器名 / Register name in the control table
            num_retry (int | None): 尝试次数,默认取自配置 / Attempts, defaults to the config

        返回值 (Returns):
            int | None: 寄存器值(符号-幅值寄存器已解码) / Register value (sign-magnitude decoded)
        """
        with self.lock:
            return self._read_register(motor_id, data_name, num_retry)

    def _read_register(self, motor_id: int, data_name: str, num_retry: int | None) -> int | None:
        self._check_connected()
        if num_retry is None:
            num_retry = self.config.num_read_retry

        start_time = time.perf_counter()
        addr, size = self._get_register(motor_id, data_name)
        packet = encode_read_packet(motor_id, addr, size)

        value = None
        for attempt in range(num_retry):
            self.drain()
            self.port_handler.write(packet)
            if self.config.write_to_read_delay_s > 0:
                time.sleep(self.config.write_to_read_delay_s)

            try:
                reply = self._read_reply(MIN_STATUS_PACKET_LENGTH + size, self.config.read_timeout_ms)
                params = self._parse_reply(reply, motor_id)
                if len(params) < size:
                    raise ProtocolError(f"Expected {size} data byte(s) from motor {motor_id}, got {len(params)}")
                value = int.from_bytes(params[:size], "little")
                break
            except ProtocolError as e:
                logger.debug(f"Read of '{data_name}' from motor {motor_id} failed (attempt {attempt + 1}/{num_retry}): {e}")

            if attempt < num_retry - 1 and self.config.retry_delay_s > 0:
                time.sleep(self.config.retry_delay_s)

        if value is None:
            logger.warning(f"Failed to read '{data_name}' from motor {motor_id} after {num_retry} attempt(s).")
            return None

        model = self.get_motor_model(motor_id)
        if data_name in self.model_encoding_table[model]:
            value = decode_sign_magnitude(value, self.model_encoding_table[model][data_name])

        self.logs[get_log_name("delta_timestamp_s", "read", data_name, motor_id)] = time.perf_counter() - start_time
        self.logs[get_log_name("timestamp_utc", "read", data_name, motor_id)] = capture_timestamp_utc()
        return value

    def read_position(self, motor_id: int) -> int | None:
        return self.read_register(motor_id, "Present_Position")

    def read_all_positions(self, motor_ids: list[int] | None = None) -> list[int]:
        """
        顺序读取多个舵机的位置 (Read Positions of Several Motors in Sequence)

        读取失败的舵机用中位值 (resolution-1)//2 代替,并记录警告。
        A motor whose read fails is replaced by the mid-range value (resolution-1)//2 and a
        warning is logged.
        """
        if motor_ids is None:
            motor_ids = self.motor_indices

        positions = []
        for i, motor_id in enumerate(motor_ids):
            if i > 0 and self.config.inter_motor_delay_s > 0:
                time.sleep(self.config.inter_motor_delay_s)
            position = self.read_position(motor_id)
            if position is None:
                position = self.get_fallback_position(motor_id)
                logger.warning(f"Using fallback position {position} for motor {motor_id}.")
            positions.append(position)
        return positions

    def write_register(self, motor_id: int, data_name: str, value: int | float):
        """
        写入单个舵机寄存器 (Write a Single Motor Register)

        功能说明 (Functionality):
            值被限制在 [0, resolution-1] 后发送一次,然后尽力读取确认包。
            默认情况下缺失的确认不算失败;严格模式下抛出 ProtocolError。

            The value is clamped to [0, resolution-1] and sent once, followed by a best-effort
            acknowledgement read. A missing acknowledgement is not a failure unless
            `strict_writes` is set, in which case ProtocolError is raised.
        """
        with self.lock:
            self._write_register(motor_id, data_name, value)

    def _write_register(self, motor_id: int, data_name: str, value: int | float):
        self._check_connected()
        start_time = time.perf_counter()

        addr, size = self._get_register(motor_id, data_name)
        max_value = self.get_resolution(motor_id) - 1
        value = min(max(int(round(value)), 0), max_value)

        self.port_handler.write(encode_write_packet(motor_id, addr, value, size))
        self._read_ack(motor_id, data_name)

        self.logs[get_log_name("delta_timestamp_s", "write", data_name, motor_id)] = time.perf_counter() - start_time
        self.logs[get_log_name("timestamp_utc", "write", data_name, motor_id)] = capture_timestamp_utc()

    def _read_ack(self, motor_id: int, data_name: str):
        if motor_id == BROADCAST_ID:
            return

        reply = self._read_reply(MIN_STATUS_PACKET_LENGTH, self.config.ack_timeout_ms)
        try:
            self._parse_reply(reply, motor_id)
        except ProtocolError as e:
            if self.config.strict_writes:
                raise ProtocolError(f"Write of '{data_name}' to motor {motor_id} was not acknowledged: {e}") from e
            logger.debug(f"No valid acknowledgement for '{data_name}' on motor {motor_id}: {e}")

    def write_goal_position(self, motor_id: int, position: int | float):
        self.write_register(motor_id, "Goal_Position", position)

    def write_homing_offset(self, motor_id: int, offset: int):
        """Writes a signed homing offset, sign-magnitude encoded on the motor's sign bit."""
        sign_bit = self.model_encoding_table[self.get_motor_model(motor_id)]["Homing_Offset"]
        self.write_register(motor_id, "Homing_Offset", encode_sign_magnitude(offset, sign_bit))

    def write_position_limits(self, motor_id: int, range_min: int, range_max: int):
        self.write_register(motor_id, "Min_Position_Limit", range_min)
        self.write_register(motor_id, "Max_Position_Limit", range_max)

    def lock_motor(self, motor_id: int):
        self.write_register(motor_id, "Torque_Enable", TorqueMode.ENABLED.value)

    def release_motor(self, motor_id: int):
        self.write_register(motor_id, "Torque_Enable", TorqueMode.DISABLED.value)

    def lock_motors(self, motor_ids: list[int] | None = None):
        for motor_id in self.motor_indices if motor_ids is None else motor_ids:
            self.lock_motor(motor_id)

    def release_motors(self, motor_ids: list[int] | None = None):
        for motor_id in self.motor_indices if motor_ids is None else motor_ids:
            self.release_motor(motor_id)

    def find_motor_indices(self, possible_ids=None, num_retry=1):
        self._check_connected()
        if possible_ids is None:
            possible_ids = range(MAX_ID_RANGE)

        indices = []
        for idx in tqdm.tqdm(possible_ids):
            present_idx = self.read_register(idx, "ID", num_retry=num_retry)
            if present_idx is None:
                continue

            if idx != present_idx:
                # sanity check
                raise OSError(
                    "Motor index used to communicate through the bus is not the same as the one present in the motor memory. The motor memory might be damaged."
                )
            indices.append(idx)

        return indices
