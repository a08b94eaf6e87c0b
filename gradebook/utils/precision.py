"""
精度处理工具模块

计算过程保持全精度，只在生成展示数据时舍入（四舍五入，0.5进位）。
"""
from typing import Any, Optional, Union
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
import logging

logger = logging.getLogger(__name__)


def round_half_up(value: Union[float, int, None], digits: int = 2) -> Optional[float]:
    """
    四舍五入到指定小数位

    Args:
        value: 需要处理的数值
        digits: 保留小数位，0 表示取整

    Returns:
        处理后的浮点数，None 及无法解析的值返回 None
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        decimal_value = Decimal(str(value))
        if not decimal_value.is_finite():
            return None
        quantum = Decimal(1).scaleb(-digits)
        return float(decimal_value.quantize(quantum, rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError, TypeError) as e:
        logger.warning(f"数值精度处理失败: {value!r}, 错误: {e}")
        return None


def round2(value: Union[float, int, None]) -> Optional[float]:
    """两位小数精度处理"""
    return round_half_up(value, 2)


def round_json(data: Any, digits: int = 2) -> Any:
    """
    递归处理报告数据中的浮点数精度

    整数与布尔值保持不变，用于把报告交给渲染器前统一格式。
    """
    if isinstance(data, dict):
        return {key: round_json(value, digits) for key, value in data.items()}
    elif isinstance(data, list):
        return [round_json(item, digits) for item in data]
    elif isinstance(data, float):
        rounded = round_half_up(data, digits)
        return data if rounded is None else rounded
    return data
