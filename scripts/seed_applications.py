#!/usr/bin/env python3
"""
Seed a demo scholarship cycle with reviewed applications and decide it.

Every step goes through the real services (state machine, review aggregator,
decision engine), so the seeded data obeys the same invariants as production
traffic: one live application per student, unique reviewers, slot-bounded
awards and a full history trail.

Usage:
    python scripts/seed_applications.py [--applications 100] [--slots 25] [--seed 42]
    python scripts/seed_applications.py --no-decide   # leave the cycle OPEN and reviewed
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import structlog

from scholarships.core.logging import setup_logging
from scholarships.core.security import Actor, Role
from scholarships.db.base import Base
from scholarships.db.session import AsyncSessionLocal, engine
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.decision_engine import DecisionRankingEngine
from scholarships.services.review_aggregator import ReviewAggregator
from scholarships.utils.constants import Recommendation
from scholarships.utils.helpers import utcnow

logger = structlog.get_logger("seed_applications")

PROGRAMS = ["Computer Science", "Medicine", "Civil Engineering", "Economics", "Agriculture"]
REVIEWERS = [Actor("seed-reviewer-1", Role.REVIEWER), Actor("seed-reviewer-2", Role.REVIEWER)]


def review_comment(score: float) -> str:
    if score > 80:
        return "Excellent candidate with strong academic record and clear motivation"
    if score > 70:
        return "Good candidate who meets all requirements"
    if score > 60:
        return "Average candidate with some potential"
    return "Below average candidate with concerns"


def review_recommendation(score: float) -> Recommendation:
    if score > 75:
        return Recommendation.APPROVE
    if score > 65:
        return Recommendation.WAITLIST
    return Recommendation.REJECT


async def seed(application_count: int, slots: int, decide: bool, rng: random.Random) -> None:
    admin = Actor("seed-admin", Role.ADMIN)
    now = utcnow()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        registry = CycleRegistry(db)
        cycle = await registry.create_cycle(
            admin,
            {
                "program_name": "Future Leaders Scholarship",
                "academic_year": f"{now.year}-{now.year + 1}",
                "description": "Demo cycle created by scripts/seed_applications.py",
                "award_amount": 5000,
                "total_slots": slots,
                "application_start": now - timedelta(days=30),
                "application_end": now + timedelta(days=30),
            },
        )
        await registry.open_cycle(admin, cycle.id)
        logger.info("seed_cycle_opened", cycle_id=str(cycle.id), slots=slots)

        machine = ApplicationStateMachine(db)
        aggregator = ReviewAggregator(db, machine=machine)

        for i in range(application_count):
            student = Actor(f"seed-student-{i + 1:03d}", Role.STUDENT)
            program = rng.choice(PROGRAMS)
            gpa = round(rng.uniform(2.5, 4.0), 2)
            application = await machine.create(
                student,
                cycle.id,
                content={
                    "motivation_letter": (
                        f"I am deeply committed to my studies in {program} and believe this "
                        f"scholarship will help me achieve my academic goals. My current GPA "
                        f"is {gpa} and I am passionate about making a positive impact in my "
                        f"community."
                    ),
                    "academic_info": {"program": program, "gpa": gpa},
                    "financial_info": {"family_income": rng.randint(5000, 60000)},
                },
                submit=True,
            )

            base_score = rng.uniform(60, 95)
            for reviewer in REVIEWERS:
                review_score = max(0.0, min(100.0, base_score + (rng.random() - 0.5) * 10))
                await aggregator.record_review(
                    reviewer,
                    application.id,
                    score=round(review_score, 2),
                    recommendation=review_recommendation(review_score),
                    comments=review_comment(review_score),
                )

        logger.info("seed_applications_reviewed", count=application_count)

        if not decide:
            print(f"Seeded {application_count} reviewed applications in cycle {cycle.id} (OPEN)")
            return

        await registry.close_cycle(admin, cycle.id)
        batch = await DecisionRankingEngine(db, machine=machine).rank_and_decide(
            Actor.system(), cycle.id
        )

    print("=" * 60)
    print(f"Cycle:     {batch.cycle_id}")
    print(f"Approved:  {len(batch.approved)}")
    print(f"Rejected:  {len(batch.rejected)}")
    print(f"Deferred:  {len(batch.deferred)}")
    print(f"Excluded:  {len(batch.excluded)}")
    print(f"Remaining: {batch.remaining_slots}")
    print("=" * 60)


async def main(args: argparse.Namespace) -> None:
    setup_logging(fmt="console")
    try:
        await seed(args.applications, args.slots, not args.no_decide, random.Random(args.seed))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo scholarship cycle")
    parser.add_argument("--applications", type=int, default=100, help="Number of applications")
    parser.add_argument("--slots", type=int, default=25, help="Award slots in the cycle")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")
    parser.add_argument("--no-decide", action="store_true", help="Skip closing and deciding")

    asyncio.run(main(parser.parse_args()))
