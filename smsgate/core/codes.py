"""Verification code extraction from SMS text.

Pattern heuristics only. A code is 4-8 digits that is not part of a longer
number and sits next to a code keyword.
"""

import re

_KEYWORDS = r"(?:验证码|校验码|动态码|确认码|动态密码|\b(?:verification\s+code|passcode|code|otp|pin)\b)"
_CODE = r"(?<!\d)(\d{4,8})(?!\d)"

# "验证码：123456", "Your code is 847291", "OTP 1234"
_KEYWORD_THEN_CODE = re.compile(_KEYWORDS + r"[^\d\n]{0,15}?" + _CODE, re.IGNORECASE)

# "847291 is your code", "123456是您的验证码"
_CODE_THEN_KEYWORD = re.compile(
    _CODE + r"[^\d\n]{0,12}?(?:is\s+your|是您的|为您的|是你的|为你的)[^\d\n]{0,10}?" + _KEYWORDS,
    re.IGNORECASE,
)

_HAS_KEYWORD = re.compile(_KEYWORDS, re.IGNORECASE)
_STANDALONE_CODE = re.compile(_CODE)


def extract_code(content: str) -> str | None:
    """Extract verification code from SMS content.

    Args:
        content: SMS text

    Returns:
        Code digits, or None when the text does not look like a code SMS
    """
    if not content:
        return None

    match = _KEYWORD_THEN_CODE.search(content)
    if match:
        return match.group(1)

    match = _CODE_THEN_KEYWORD.search(content)
    if match:
        return match.group(1)

    # Keyword somewhere, code somewhere else ("【Bank】... 验证码 ... 有效期5分钟 ... 482913")
    if _HAS_KEYWORD.search(content):
        match = _STANDALONE_CODE.search(content)
        if match:
            return match.group(1)

    return None
