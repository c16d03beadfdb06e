# Copyright 2025 Google LLC
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
# ==============================================================================

import re
from datetime import datetime, timezone
from typing import Any, Optional

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Indian mobile numbers: ten digits starting with 6-9.
_PHONE = re.compile(r"^[6-9]\d{9}$")
_HTML_TAG = re.compile(r"<[^>]*>")
_UNSAFE_CHARS = re.compile(r"[<>\"'`;]")


def format_response(
    success: bool,
    data: Any = None,
    error: Optional[str] = None,
    meta: Optional[dict] = None,
) -> dict:
    """Wraps a payload in the envelope every endpoint responds with."""
    return {
        "success": success,
        "data": data,
        "error": error,
        "meta": meta,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(_EMAIL.fullmatch(email))


def is_valid_phone(phone: Any) -> bool:
    return isinstance(phone, str) and bool(_PHONE.fullmatch(phone))


def sanitize_input(value: Any) -> Any:
    """Trims strings and strips HTML tags and quote/angle characters."""
    if not isinstance(value, str):
        return value
    return _UNSAFE_CHARS.sub("", _HTML_TAG.sub("", value.strip()))
