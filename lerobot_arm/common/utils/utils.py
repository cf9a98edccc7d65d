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
通用工具函数 (General Utilities)

功能说明 (Functionality):
    日志初始化、时间戳和终端交互等小工具。
    Logging setup, timestamps and small terminal helpers.
"""

import logging
import os
import platform
import select
import sys
from datetime import datetime, timezone


def init_logging(level: int = logging.INFO):
    """
    初始化日志系统 (Initialize Logging)

    功能说明 (Functionality):
        替换根日志器的处理器,使用带时间、文件名和行号的统一格式。
        Replaces the root logger handlers with a single console handler whose format shows
        the time, the file and line, and the message.
    """

    def custom_format(record):
        dt = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        fnameline = f"{record.pathname}:{record.lineno}"
        message = f"{record.levelname} {dt} {fnameline[-15:]:>15} {record.msg}"
        return message

    logging.basicConfig(level=level)

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    formatter = logging.Formatter()
    formatter.format = custom_format
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logging.getLogger().addHandler(console_handler)


def capture_timestamp_utc():
    return datetime.now(timezone.utc)


def is_headless() -> bool:
    """Returns True when no display is available for keyboard listeners."""
    if platform.system() == "Linux":
        return "DISPLAY" not in os.environ and "WAYLAND_DISPLAY" not in os.environ
    return False


def enter_pressed() -> bool:
    """Non-blocking check for a pending Enter key on stdin."""
    if platform.system() == "Windows":
        import msvcrt

        return msvcrt.kbhit() and msvcrt.getch() == b"\r"
    return bool(select.select([sys.stdin], [], [], 0)[0]) and sys.stdin.readline().strip() == ""
