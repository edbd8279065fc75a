"""
响应体解码与字段提取

第三方矿池返回的 JSON 在所需字段之外经常不合法，所以这里不做完整解析，
而是按字段用正则定位数值；每个函数返回 Optional[int]，可独立测试。
"""

import logging
import re
import zlib
from typing import List, Optional

import httpx

from .exceptions import DecodeError, ParseError
from .models import PoolStats

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

_COMPRESSED_ENCODINGS = {"gzip", "x-gzip", "deflate"}
_PASSTHROUGH_ENCODINGS = {"", "identity"}

# 解压后响应体的上限，防止压缩炸弹
MAX_DECODED_SIZE = 8 * 1024 * 1024


# =============================================================================
# 解压
# =============================================================================

def content_encodings(headers: httpx.Headers) -> List[str]:
    """
    返回响应声明的全部 Content-Encoding

    同名头可能出现多次，单个头也可能是逗号分隔的多个值。
    """
    return [
        value.strip().lower()
        for value in headers.get_list("content-encoding", split_commas=True)
    ]


def _looks_like_text(body: bytes) -> bool:
    return body.lstrip()[:1] in (b"{", b"[")


def _inflate(body: bytes, wbits: int) -> bytes:
    """解压并限制输出大小"""
    decompressor = zlib.decompressobj(wbits)
    data = decompressor.decompress(body, MAX_DECODED_SIZE)
    if decompressor.unconsumed_tail or (not decompressor.eof and len(data) >= MAX_DECODED_SIZE):
        raise DecodeError(f"Decoded body exceeds {MAX_DECODED_SIZE} bytes")
    if not decompressor.eof:
        raise zlib.error("incomplete or truncated stream")
    return data


def _decompress(body: bytes) -> bytes:
    """按内容嗅探 gzip / zlib / raw deflate"""
    if body[:2] == GZIP_MAGIC:
        return _inflate(body, 16 + zlib.MAX_WBITS)
    try:
        return _inflate(body, zlib.MAX_WBITS)
    except zlib.error:
        return _inflate(body, -zlib.MAX_WBITS)


def decode_body(body: bytes, encodings: List[str]) -> bytes:
    """
    根据响应头声明的编码解压响应体

    Args:
        body: 原始（未解码）响应体
        encodings: content_encodings() 的结果，按应用顺序排列

    Returns:
        解压后的响应体

    Raises:
        DecodeError: 编码不受支持或解压失败
    """
    for encoding in reversed(encodings):
        if encoding in _PASSTHROUGH_ENCODINGS:
            continue
        if encoding not in _COMPRESSED_ENCODINGS:
            raise DecodeError(f"Unsupported content encoding: {encoding}")
        # 有些服务器声明了压缩但实际返回明文
        if _looks_like_text(body):
            logger.debug(f"Body labelled {encoding} is already plain text")
            break
        try:
            body = _decompress(body)
        except zlib.error as e:
            raise DecodeError(f"Failed to decode {encoding} body: {e}") from e
    return body


def body_text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


# =============================================================================
# 字段提取
# =============================================================================

def _section(body: str, section: Optional[str]) -> Optional[str]:
    """返回从 "section" 键开始的文本，不存在时返回 None"""
    if section is None:
        return body
    index = body.find(f'"{section}"')
    if index < 0:
        return None
    return body[index:]


def extract_digits(
    body: str,
    key: str,
    section: Optional[str] = None,
    ignore_case: bool = False,
) -> Optional[str]:
    """
    提取 "key": 123 或 "key": "123" 中的数字串

    指定 section 时优先在该段之后查找，找不到再在全文中查找。
    """
    pattern = re.compile(
        r'"' + re.escape(key) + r'"\s*:\s*"?(\d+)',
        re.IGNORECASE if ignore_case else 0,
    )
    scoped = _section(body, section)
    for text in (scoped, body):
        if text is None:
            continue
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_int(
    body: str,
    key: str,
    section: Optional[str] = None,
    ignore_case: bool = False,
) -> Optional[int]:
    digits = extract_digits(body, key, section=section, ignore_case=ignore_case)
    return int(digits) if digits is not None else None


def truncate_millis(value: Optional[str]) -> Optional[int]:
    """
    毫秒时间戳字符串 -> unix 秒

    直接去掉最后三位再解析，不做除法。
    """
    if not value or len(value) <= 3 or not value.isdigit():
        return None
    return int(value[:-3])


def extract_forknote_stats(body: str) -> PoolStats:
    """
    解析 forknote 矿池的 <api>stats 响应

    还没出过块的矿池没有 lastBlockFound，此时保留高度，last_block_found 为 None，
    与 node.js 的处理一致。

    Raises:
        ParseError: 缺少 height
    """
    height = extract_int(body, "height", section="network")
    if height is None:
        raise ParseError("Couldn't parse height")

    return PoolStats(
        height=height,
        last_block_found=truncate_millis(extract_digits(body, "lastBlockFound")),
        hashrate=extract_int(body, "hashrate", section="pool", ignore_case=True) or 0,
        difficulty=extract_int(body, "difficulty", section="network") or 0,
    )


def extract_nodejs_stats(network_body: str, pool_body: str) -> PoolStats:
    """
    解析 node.js 矿池的 network/stats 与 pool/stats 响应

    高度和难度来自 network/stats；算力和最后出块时间（已经是秒）来自 pool/stats。
    """
    height = extract_int(network_body, "height")
    if height is None:
        raise ParseError("Couldn't parse height")

    last_found = extract_int(pool_body, "lastBlockFoundTime", section="pool_statistics")

    return PoolStats(
        height=height,
        last_block_found=last_found or None,
        hashrate=extract_int(pool_body, "hashRate", section="pool_statistics", ignore_case=True) or 0,
        difficulty=extract_int(network_body, "difficulty") or 0,
    )
