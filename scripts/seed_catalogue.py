"""Seed the default vibes and the recommendation catalogue into the relational tier."""
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import select

from vibeplan.config import get_settings
from vibeplan.database import build_engine, build_session_factory
from vibeplan.models.catalogue import RecommendationRow, VibeRow
from vibeplan.services.catalogue import DEFAULT_RECOMMENDATIONS, default_vibes


async def seed():
    settings = get_settings()
    if not settings.DATABASE_URL:
        print("DATABASE_URL is not set; nothing to seed.")
        return

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    try:
        async with session_factory() as session:
            for vibe in default_vibes():
                existing = await session.get(VibeRow, vibe.id)
                if existing is None:
                    session.add(VibeRow(**vibe.model_dump()))
                    print(f"  Seeded vibe {vibe.id}")
                else:
                    print(f"  Vibe {vibe.id} already exists, skipping.")

            for rec in DEFAULT_RECOMMENDATIONS:
                existing = await session.execute(
                    select(RecommendationRow).where(
                        RecommendationRow.vibe_combo_key == rec["vibe_combo_key"]
                    )
                )
                if existing.scalar_one_or_none() is None:
                    session.add(RecommendationRow(**rec))
                    print(f"  Seeded recommendations for {rec['vibe_combo_key']}")
                else:
                    print(f"  Recommendations for {rec['vibe_combo_key']} already exist, skipping.")
            await session.commit()
    finally:
        await engine.dispose()
    print("Done seeding catalogue.")


if __name__ == "__main__":
    asyncio.run(seed())
