from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, decimals: int = 2) -> float:
    """
    Округление до заданного числа знаков по правилу half-up.

    Округляется точное двоичное значение float, как это делает toFixed:
    2.675 хранится как 2.67499..., поэтому round_half_up(2.675) == 2.67.

    Args:
        value: Округляемое число
        decimals: Количество знаков после запятой

    Returns:
        float: Округлённое значение
    """
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))
