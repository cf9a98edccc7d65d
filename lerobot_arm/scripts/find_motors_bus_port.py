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
查找舵机总线串口 (Find the Motors Bus Serial Port)

功能说明 (Functionality):
    比较拔出 USB 线前后的串口列表,找出舵机控制板所在的串口,并记住它供之后的脚本使用。
    Compares the serial ports before and after unplugging the USB cable to find the port of the
    motor control board, and remembers it for the other scripts.

Example:

```shell
python -m lerobot_arm.scripts.find_motors_bus_port
```
"""

import logging
import platform
import time
from pathlib import Path

from termcolor import colored

from lerobot_arm.common.utils.utils import init_logging
from lerobot_arm.configs.settings import JsonSettingsStore, SettingsStore


def find_available_ports() -> list[str]:
    from serial.tools import list_ports  # Part of pyserial library

    if platform.system() == "Windows":
        # List COM ports using pyserial
        ports = [port.device for port in list_ports.comports()]
    else:  # Linux/macOS
        # List /dev/tty* ports for Unix-based systems
        ports = [str(path) for path in Path("/dev").glob("tty*")]
    return ports


def detect_removed_port(ports_before: list[str], ports_after: list[str]) -> str:
    ports_diff = sorted(set(ports_before) - set(ports_after))

    if len(ports_diff) == 1:
        return ports_diff[0]
    elif len(ports_diff) == 0:
        raise OSError(f"Could not detect the port. No difference was found ({ports_diff}).")
    else:
        raise OSError(f"Could not detect the port. More than one port was found ({ports_diff}).")


def find_port(settings_store: SettingsStore | None = None) -> str:
    print("Finding all available ports for the MotorsBus.")
    ports_before = find_available_ports()
    print("Ports before disconnecting:", ports_before)

    print("Remove the USB cable from your MotorsBus and press Enter when done.")
    input()  # Wait for user to disconnect the device

    time.sleep(0.5)  # Allow some time for port to be released
    port = detect_removed_port(ports_before, find_available_ports())
    print(colored(f"The port of this MotorsBus is '{port}'", "green", attrs=["bold"]))
    print("Reconnect the USB cable.")

    if settings_store is not None:
        settings = settings_store.load()
        settings.last_port = port
        settings_store.save(settings)
        logging.info(f"Remembered '{port}' as the last used port.")
    return port


def main():
    init_logging()
    find_port(JsonSettingsStore())


if __name__ == "__main__":
    main()
