"""금액 계산 유틸리티 (MT, 소수점 2자리)"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """임의의 숫자 값을 센타보 단위로 반올림한 Decimal 로 변환합니다.

    float 는 str 을 거쳐 변환하여 이진 부동소수점 오차가 금액에 섞이지 않게 합니다.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_rate(base: Number, rate: Number) -> Decimal:
    """base * rate 를 금액 단위로 계산 (예: 추천 보너스 10%)"""
    return to_money(Decimal(str(base)) * Decimal(str(rate)))
