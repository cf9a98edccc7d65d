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
版本管理模块 (Version Management Module)

功能说明 (Functionality):
    此模块启用 `lerobot_arm.__version__` 属性,允许用户查询已安装的库版本。
    This module enables the `lerobot_arm.__version__` attribute, allowing users to query
    the installed version of the library.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lerobot-arm")
except PackageNotFoundError:
    # 开发模式下未安装 / Not installed (e.g. running from a source checkout)
    __version__ = "unknown"
