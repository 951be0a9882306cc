import argparse
import asyncio
import random

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.session import SessionLocal
from app.models.tournament import MatchStatus, Registration, RegistrationStatus, Tournament, TournamentStatus
from app.services.bracket import generate_bracket
from app.services.events import CollectingEventPublisher
from app.services.tournament import get_tournament_matches, record_result, resolve_bye


def _random_score() -> tuple[int, int]:
    # Генерируем счет серии до трех побед без ничьих.
    loser_score = random.randint(0, 2)
    return (3, loser_score) if random.random() < 0.5 else (loser_score, 3)


async def main(entrants: int, game_id: int, seed: int | None) -> None:
    """Создает турнир, подтверждает участников, строит сетку и доигрывает ее до чемпиона."""
    random.seed(seed)
    publisher = CollectingEventPublisher()
    async with SessionLocal() as db:
        tournament = Tournament(
            name=f"Demo Cup ({entrants})",
            game_id=game_id,
            status=TournamentStatus.LIVE.value,
            max_participants=entrants,
        )
        db.add(tournament)
        await db.flush()
        for user_id in range(1, entrants + 1):
            db.add(
                Registration(
                    tournament_id=tournament.id,
                    user_id=user_id,
                    status=RegistrationStatus.CONFIRMED.value,
                )
            )
        await db.commit()

        await generate_bracket(db, tournament.id, seed=seed)

        # Играем раунд за раундом, пока финал не завершен.
        while True:
            pending = [
                match
                for match in await get_tournament_matches(db, tournament.id)
                if match.status != MatchStatus.COMPLETED.value and match.participant1_id is not None
            ]
            if not pending:
                break
            current_round = min(match.round for match in pending)
            for match in [m for m in pending if m.round == current_round]:
                if match.participant2_id is None:
                    await resolve_bye(db, match.id, publisher=publisher)
                    continue
                participant1_score, participant2_score = _random_score()
                await record_result(db, match.id, participant1_score, participant2_score, publisher=publisher)

    print(f"Турнир сыгран, база: {settings.database_url}")
    for event in publisher.events:
        print(event.kind.value, event.payload)


if __name__ == "__main__":
    # Запускаем асинхронный сидер из CLI.
    parser = argparse.ArgumentParser(description="Seed and play out a demo single-elimination tournament")
    parser.add_argument("--entrants", type=int, default=13)
    parser.add_argument("--game-id", type=int, default=1)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()
    setup_logging(settings.log_level)
    asyncio.run(main(args.entrants, args.game_id, args.seed))
