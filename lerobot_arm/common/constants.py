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
全局常量定义模块 (Global Constants Definition Module)

功能说明 (Functionality):
    定义库中使用的全局常量,包括数据集键名称和缓存路径配置。
    Defines the global constants used throughout the library, including dataset key names
    and cache path configuration.
"""

import os
from pathlib import Path

from huggingface_hub.constants import HF_HOME

# ================================================================================
# 数据集键名称常量 (Dataset Key Name Constants)
# ================================================================================

OBS_ROBOT = "observation.state"  # 机器人关节状态 / Robot joint state
OBS_IMAGES = "observation.images"  # 相机视频键前缀 / Camera video key prefix
ACTION = "action"  # 动作键 / Action key

# ================================================================================
# 缓存目录配置 (Cache Directory Configuration)
# ================================================================================

default_cache_path = Path(HF_HOME) / "lerobot"

# 可通过环境变量 HF_LEROBOT_HOME 自定义
# Can be overridden by setting the HF_LEROBOT_HOME environment variable
HF_LEROBOT_HOME = Path(os.getenv("HF_LEROBOT_HOME", default_cache_path)).expanduser()

CALIBRATION_DIR = HF_LEROBOT_HOME / "calibration"
SETTINGS_PATH = HF_LEROBOT_HOME / "settings.json"
