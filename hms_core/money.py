"""
hms_core/money.py

定点金额 - 内部以最小货币单位（分）整数存储和计算
只在边界处与 Decimal 互相转换，避免浮点误差
"""
from decimal import Decimal, InvalidOperation
from typing import Union

MINOR_UNITS = 2
CENT = Decimal(1).scaleb(-MINOR_UNITS)

Amount = Union[Decimal, int, str]


def to_cents(amount: Amount) -> int:
    """
    Decimal 金额转换为分

    Raises:
        ValueError: 非法数字，或精度超过两位小数
    """
    if isinstance(amount, float):
        raise ValueError("金额不能使用浮点数")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"非法金额: {amount}")
    if not value.is_finite():
        raise ValueError(f"非法金额: {amount}")
    if value != value.quantize(CENT):
        raise ValueError(f"金额精度超过 {MINOR_UNITS} 位小数: {amount}")
    return int(value.scaleb(MINOR_UNITS))


def from_cents(cents: int) -> Decimal:
    """分转换为两位小数的 Decimal"""
    return Decimal(int(cents or 0)).scaleb(-MINOR_UNITS).quantize(CENT)


def line_total(unit_price_cents: int, quantity: int) -> int:
    """行金额 = 单价 × 数量（整数运算，无舍入）"""
    return int(unit_price_cents) * int(quantity)
