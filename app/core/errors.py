"""Ошибки движка сетки и рейтинга, которые видит вызывающий слой."""


class TournamentError(ValueError):
    # Базовая ошибка: вызывающий код может ловить её как ValueError.
    pass


class NotFound(TournamentError):
    pass


class InsufficientEntrants(TournamentError):
    pass


class InvalidScore(TournamentError):
    pass


class MatchNotReady(TournamentError):
    pass


class InvalidStatusTransition(TournamentError):
    pass


class RegenerationConflict(TournamentError):
    pass


class BracketSlotConflict(TournamentError):
    pass


class RatingApplyFailure(TournamentError):
    """Транзакция рейтинга не прошла; результат матча нужно повторить с тем же match_id."""
