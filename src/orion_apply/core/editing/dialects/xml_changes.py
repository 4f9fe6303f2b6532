# Orion Agent
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Orion Agent.
#
# Orion Agent is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
Orion Apply -- XML Change List Dialect (v7.5.0)

    <code_changes>
      <file>
        <file_operation>CREATE | UPDATE | DELETE</file_operation>
        <file_path>src/app.py</file_path>
        <file_code>
    ...full file content...
        </file_code>
      </file>
    </code_changes>

LLM output is rarely well-formed XML (code bodies contain '<' freely), so
the elements are picked out with tolerant regexes rather than an XML parser.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from orion_apply.core.editing.safety import secure_delete, secure_write
from orion_apply.core.errors import EditParseError

logger = logging.getLogger("orion_apply.editing.dialects.xml_changes")

_FILE_RE = re.compile(r"<file>(.*?)</file>", re.DOTALL)
_OPERATION_RE = re.compile(r"<file_operation>\s*(\w+)\s*</file_operation>", re.DOTALL)
_PATH_RE = re.compile(r"<file_path>\s*(.*?)\s*</file_path>", re.DOTALL)
_CODE_RE = re.compile(r"<file_code>(.*?)</file_code>", re.DOTALL)

OPERATIONS = ("CREATE", "UPDATE", "DELETE")


@dataclass
class FileChange:
    operation: str
    file_path: str
    code: str = ""


def parse_code_changes(content: str) -> list[FileChange]:
    changes = []
    for match in _FILE_RE.finditer(content):
        block = match.group(1)
        op_match = _OPERATION_RE.search(block)
        path_match = _PATH_RE.search(block)
        if not op_match or not path_match:
            raise EditParseError(f"<file> element without operation or path:\n{block}")

        operation = op_match.group(1).upper()
        if operation not in OPERATIONS:
            raise EditParseError(f"Unknown file_operation '{operation}' for {path_match.group(1)}")

        code = ""
        code_match = _CODE_RE.search(block)
        if code_match:
            code = code_match.group(1)
            if code.startswith("\r\n"):
                code = code[2:]
            elif code.startswith("\n"):
                code = code[1:]
        elif operation != "DELETE":
            raise EditParseError(f"Missing <file_code> for {operation} {path_match.group(1)}")

        changes.append(FileChange(operation, path_match.group(1), code))
    return changes


async def process_xml_changes(content: str, write_root: str | Path, dry_run: bool = False) -> None:
    for change in parse_code_changes(content):
        if dry_run:
            logger.info("[Dry Run] Would %s %s", change.operation.lower(), change.file_path)
            continue
        if change.operation == "DELETE":
            if not secure_delete(write_root, change.file_path):
                logger.warning("DELETE of missing file %s ignored", change.file_path)
            continue
        secure_write(write_root, change.file_path, change.code)
        logger.info("%s %s", change.operation.title(), change.file_path)
