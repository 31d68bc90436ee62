from apscheduler.schedulers.asyncio import AsyncIOScheduler
from services.challenge_service import ChallengeService
from services.user_registry import UserRegistry
from llm.generator import ChallengeGenerationError
from models import Challenge, MAX_ATTEMPTS
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
import asyncio
import logging

logger = logging.getLogger(__name__)

# time-of-day tag -> (hour, minute), UTC
SCHEDULE = {
    "morning": (8, 0),
    "evening": (18, 0),
}

GREETINGS = {
    "morning": "Good morning! 🌅",
    "evening": "Good evening! 🌆",
}

@dataclass
class DistributionOutcome:
    user_id: str
    status: str  # "sent" | "skipped" | "failed" | "delivery_failed"
    language: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None

def validate_time_of_day(time_of_day: str) -> str:
    if time_of_day not in SCHEDULE:
        raise ValueError(f"Unknown time of day '{time_of_day}'. Use one of: {', '.join(SCHEDULE)}")
    return time_of_day

def format_scheduled_message(time_of_day: str, challenge: Challenge) -> str:
    return f"{GREETINGS[time_of_day]}\n\n" \
           f"Your daily {challenge.language} challenge is ready:\n\n" \
           f"**{challenge.title}**\n" \
           f"{challenge.question}\n\n" \
           f"👇 _Submit your answer (you have {MAX_ATTEMPTS} attempts)_"

def next_scheduled_run(now: datetime) -> Tuple[str, datetime]:
    """Next (time_of_day, UTC datetime) slot strictly after `now`."""
    now = now.astimezone(timezone.utc)
    for day_offset in (0, 1):
        day = now + timedelta(days=day_offset)
        for time_of_day, (hour, minute) in sorted(SCHEDULE.items(), key=lambda item: item[1]):
            slot = day.replace(hour=hour, minute=minute, second=0, microsecond=0)
            if slot > now:
                return time_of_day, slot
    raise RuntimeError("No scheduled slot found")

def schedule_info() -> dict:
    return {
        time_of_day: {
            "time": f"{hour:02d}:{minute:02d} UTC",
            "cron": f"{minute} {hour} * * *",
        }
        for time_of_day, (hour, minute) in SCHEDULE.items()
    }

class DailyChallengeScheduler:
    def __init__(self, challenge_service: ChallengeService, registry: UserRegistry, sink,
                 send_delay: float = 0.5):
        self.challenge_service = challenge_service
        self.registry = registry
        self.sink = sink
        self.send_delay = send_delay
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    def start(self):
        for time_of_day, (hour, minute) in SCHEDULE.items():
            self.scheduler.add_job(
                self.distribute, 'cron',
                hour=hour, minute=minute,
                args=[time_of_day],
                id=f"{time_of_day}_challenges",
                replace_existing=True,
            )
        self.scheduler.start()
        logger.info("Scheduler started. Morning: 08:00 UTC, Evening: 18:00 UTC")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def distribute(self, time_of_day: str) -> List[DistributionOutcome]:
        validate_time_of_day(time_of_day)
        users = self.registry.get_all_users()

        if not users:
            logger.info(f"No users registered for {time_of_day} challenges")
            return []

        logger.info(f"Running {time_of_day} challenge distribution for {len(users)} user(s)")
        outcomes = []
        for index, user_id in enumerate(users):
            outcome = await self._distribute_to_user(user_id, time_of_day)
            outcomes.append(outcome)

            # Small delay between messages
            if outcome.status == "sent" and self.send_delay and index < len(users) - 1:
                await asyncio.sleep(self.send_delay)

        sent = sum(1 for o in outcomes if o.status == "sent")
        failed = sum(1 for o in outcomes if o.status in ("failed", "delivery_failed"))
        logger.info(f"{time_of_day.capitalize()} distribution complete: "
                    f"{sent} sent, {len(outcomes) - sent - failed} skipped, {failed} failed")
        return outcomes

    async def _distribute_to_user(self, user_id: str, time_of_day: str) -> DistributionOutcome:
        try:
            challenge = await self.challenge_service.refresh_challenge(user_id)
            if challenge is None:
                logger.info(f"User {user_id} already has today's challenge")
                return DistributionOutcome(user_id, "skipped")

            message = format_scheduled_message(time_of_day, challenge)
            delivered = await self.sink.deliver(user_id, message)
            status = "sent" if delivered else "delivery_failed"
            return DistributionOutcome(user_id, status, challenge.language, challenge.title)

        except ChallengeGenerationError as e:
            logger.error(f"Failed to generate {time_of_day} challenge for {user_id}: {e}")
            return DistributionOutcome(user_id, "failed", error=str(e))
        except Exception as e:
            logger.error(f"Failed to send {time_of_day} challenge to {user_id}: {e}", exc_info=True)
            return DistributionOutcome(user_id, "failed", error=str(e))
