"""Test helpers: direct row seeding and credentials for seeded users."""

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cleanbook.core.permissions import Actor, UserRole
from cleanbook.core.security import create_access_token
from cleanbook.domain.booking_state import BookingStatus
from cleanbook.models import Booking, CleanerProfile, Service, User


class Seed:
    """Inserts rows directly, bypassing the lifecycle engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._counter = 0

    async def user(self, role: UserRole = UserRole.CUSTOMER, available: bool = True, active: bool = True) -> User:
        self._counter += 1
        async with self.session_factory() as db:
            user = User(
                email=f"{role.value.lower()}{self._counter}@example.com",
                name=f"{role.value.title()} {self._counter}",
                role=role,
                is_active=active,
            )
            db.add(user)
            await db.flush()
            if role == UserRole.CLEANER:
                db.add(CleanerProfile(user_id=user.id, is_available=available))
            await db.commit()
            return user

    async def service(self, price: int = 12000, active: bool = True) -> Service:
        async with self.session_factory() as db:
            service = Service(
                name="Deep clean",
                category="deep",
                price=price,
                duration_minutes=180,
                is_active=active,
            )
            db.add(service)
            await db.commit()
            return service

    async def booking(
        self,
        customer: User,
        status: BookingStatus = BookingStatus.PENDING,
        cleaner: User | None = None,
        service: Service | None = None,
    ) -> Booking:
        service = service or await self.service()
        async with self.session_factory() as db:
            booking = Booking(
                customer_id=customer.id,
                cleaner_id=cleaner.id if cleaner else None,
                service_id=service.id,
                status=status,
                service_date=date.today() + timedelta(days=3),
                time_slot="09:00-12:00",
                address="12 Harbour Street",
                city="Colombo",
                total_price=service.price,
            )
            db.add(booking)
            await db.commit()
            return booking

    async def reload(self, booking_id: UUID) -> Booking | None:
        async with self.session_factory() as db:
            return await db.get(Booking, booking_id)


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=UserRole(user.role))


def token_for(user: User) -> str:
    return create_access_token(user.id, UserRole(user.role).value)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


def make_engine(path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
