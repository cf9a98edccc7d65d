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

from lerobot_arm.configs.settings import InMemorySettingsStore, JsonSettingsStore, UserSettings


def test_json_store_round_trip(tmp_path):
    store = JsonSettingsStore(tmp_path / "settings" / "settings.json")
    settings = UserSettings(hf_token="hf_abc", repo_id="user/so100_cube", last_port="/dev/ttyACM0")
    store.save(settings)

    assert store.fpath.is_file()
    assert store.load() == settings


def test_json_store_defaults_when_missing(tmp_path):
    assert JsonSettingsStore(tmp_path / "missing.json").load() == UserSettings()


def test_in_memory_store_returns_copies():
    store = InMemorySettingsStore()
    settings = store.load()
    settings.repo_id = "user/x"
    assert store.load().repo_id is None

    store.save(settings)
    assert store.load().repo_id == "user/x"
