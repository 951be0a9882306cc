from dataclasses import dataclass

# Единственная таблица порогов: (название, нижняя граница), по убыванию.
TIER_THRESHOLDS: list[tuple[str, int]] = [
    ("Grandmaster", 2400),
    ("Master", 2200),
    ("Diamond", 2000),
    ("Platinum", 1800),
    ("Gold", 1600),
    ("Silver", 1400),
    ("Bronze", 1200),
    ("Iron", 0),
]

TIER_ORDER: list[str] = [title for title, _threshold in reversed(TIER_THRESHOLDS)]


@dataclass(frozen=True)
class TierProgress:
    current_tier: str
    next_tier: str | None
    percentage: int
    remaining: int


def tier_of(elo: int) -> str:
    # Конвертируем рейтинг в название лиги; всё ниже нуля тоже Iron.
    for title, threshold in TIER_THRESHOLDS:
        if elo >= threshold:
            return title
    return "Iron"


def tier_level(elo: int) -> int:
    # Порядковый номер лиги: Iron = 1 ... Grandmaster = 8.
    return TIER_ORDER.index(tier_of(elo)) + 1


def tier_changed(elo_before: int, elo_after: int) -> bool:
    return tier_of(elo_before) != tier_of(elo_after)


def tier_bounds(title: str) -> tuple[int, int | None]:
    """Возвращает [нижняя, верхняя) границы лиги; у Grandmaster верхней нет."""
    index = TIER_ORDER.index(title)
    lower = dict(TIER_THRESHOLDS)[title]
    if index + 1 == len(TIER_ORDER):
        return lower, None
    return lower, dict(TIER_THRESHOLDS)[TIER_ORDER[index + 1]]


def tier_progress(elo: int) -> TierProgress:
    # Считаем прогресс внутри текущей лиги до следующей.
    current = tier_of(elo)
    lower, upper = tier_bounds(current)
    if upper is None:
        return TierProgress(current_tier=current, next_tier=None, percentage=100, remaining=0)

    lower = max(lower, 0)
    span = upper - lower
    progress = min(max(elo - lower, 0), span)
    percentage = (progress * 100 + span // 2) // span
    return TierProgress(
        current_tier=current,
        next_tier=TIER_ORDER[TIER_ORDER.index(current) + 1],
        percentage=percentage,
        remaining=upper - elo,
    )
