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
符号-幅值编码工具 (Sign-Magnitude Encoding Utilities)

功能说明 (Functionality):
    Feetech 舵机的部分寄存器(例如 Homing_Offset)不使用二进制补码,
    而是用一个指定的位作为符号位,其余低位存放幅值。

    Some Feetech registers (e.g. Homing_Offset) do not use two's complement. A chosen bit
    holds the sign and the lower bits hold the magnitude.

示例 (Example):
    ```python
    encode_sign_magnitude(-5, 11)   # 0b1000_0000_0101 == 2053
    decode_sign_magnitude(2053, 11)  # -5
    ```
"""


def encode_sign_magnitude(value: int, sign_bit_index: int) -> int:
    """
    https://en.wikipedia.org/wiki/Signed_number_representations#Sign%E2%80%93magnitude
    """
    max_magnitude = (1 << sign_bit_index) - 1
    magnitude = abs(value)
    if magnitude > max_magnitude:
        raise ValueError(f"Magnitude {magnitude} exceeds {max_magnitude} (max for {sign_bit_index=})")

    direction_bit = 1 if value < 0 else 0
    return (direction_bit << sign_bit_index) | magnitude


def decode_sign_magnitude(encoded_value: int, sign_bit_index: int) -> int:
    """
    https://en.wikipedia.org/wiki/Signed_number_representations#Sign%E2%80%93magnitude
    """
    direction_bit = (encoded_value >> sign_bit_index) & 1
    magnitude_mask = (1 << sign_bit_index) - 1
    magnitude = encoded_value & magnitude_mask
    return -magnitude if direction_bit else magnitude
