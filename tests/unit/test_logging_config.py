#
# Copyright 2025 EDT&Partners
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
#

import logging

from logging_config import ToolLog, setup_logging


def _file_handlers(tool_log):
    return [h for h in tool_log.logger.handlers if isinstance(h, logging.FileHandler)]


def test_messages_buffer_until_live(tmp_path):
    tool_log = ToolLog("buffered-tool")
    tool_log.log("first")
    tool_log.log("second", logging.WARNING)

    assert not tool_log.is_live
    assert tool_log.pending == ["first", "second"]

    log_file = tmp_path / "tool.log"
    tool_log.go_live(str(log_file))
    tool_log.log("third")

    assert tool_log.is_live
    assert tool_log.pending == []
    lines = log_file.read_text().splitlines()
    assert [line.rsplit(" - ", 1)[1] for line in lines] == ["first", "second", "third"]
    assert " - WARNING - " in lines[1]


def test_go_live_flushes_once_and_reuses_handler(tmp_path):
    tool_log = ToolLog("reused-tool")
    tool_log.log("queued")
    log_file = tmp_path / "tool.log"

    tool_log.go_live(str(log_file))
    tool_log.go_live(str(log_file))

    assert log_file.read_text().count("queued") == 1
    assert len(_file_handlers(tool_log)) == 1


def test_go_live_retargets_file(tmp_path):
    tool_log = ToolLog("moved-tool")
    tool_log.go_live(str(tmp_path / "old.log"))
    tool_log.go_live(str(tmp_path / "new.log"))
    tool_log.log("after move")

    handlers = _file_handlers(tool_log)
    assert [h.baseFilename for h in handlers] == [str(tmp_path / "new.log")]
    assert "after move" in (tmp_path / "new.log").read_text()
    assert "after move" not in (tmp_path / "old.log").read_text()


def test_setup_logging_returns_named_logger():
    assert setup_logging(module_name="lti_tests").name == "lti_tests"
