"""
User repository - encapsulates all user data access (SOLID: Single Responsibility).
Challenge: Keep queries in one place; the password hash never leaves this module.
"""

from sqlalchemy import func, insert, select, update

from reader_api.core.security import hash_password, verify_password
from reader_api.db.database import Row
from reader_api.db.models.user import User
from reader_api.db.query import apply_filters, order_clauses
from reader_api.db.repositories.base_repository import BaseRepository
from reader_api.schemas.user import UserCreate, UserQuery, UserResponse, UserUpdate

users = User.__table__

SORTABLE = {
    "id": users.c.id,
    "username": users.c.username,
    "created_at": users.c.created_at,
    "updated_at": users.c.updated_at,
    "last_login_at": users.c.last_login_at,
}


class UserRepository(BaseRepository[UserResponse]):
    """User-specific queries. Deletion is a soft delete."""

    table = users
    response_model = UserResponse

    async def create(self, data: UserCreate) -> UserResponse:
        """Insert a user, storing only the bcrypt hash of the password."""
        values = data.model_dump(exclude={"password"})
        values["password_hash"] = hash_password(data.password)
        row = await self._fetch_one(insert(users).values(**values).returning(*users.c))
        return self._format(row)

    async def find_by_id(self, id: int) -> UserResponse | None:
        return await self._find_active(users.c.id == id)

    async def find_by_username(self, username: str) -> UserResponse | None:
        return await self._find_active(users.c.username == username)

    async def find_by_email(self, email: str) -> UserResponse | None:
        return await self._find_active(users.c.email == email)

    async def _find_active(self, condition) -> UserResponse | None:
        row = await self._fetch_one(select(users).where(condition, users.c.is_active.is_(True)))
        return self._format(row) if row else None

    async def find_all(self, query: UserQuery | None = None) -> list[UserResponse]:
        query = query or UserQuery()
        stmt = apply_filters(select(users), self._conditions(query))
        stmt = stmt.order_by(
            *order_clauses(SORTABLE, query.order_by, query.direction, users.c.id)
        )
        rows = await self.db.execute_query(stmt.limit(query.limit).offset(query.offset))
        return [self._format(row) for row in rows]

    async def count(self, query: UserQuery | None = None) -> int:
        query = query or UserQuery()
        stmt = select(func.count().label("total")).select_from(users)
        return await self._scalar_count(apply_filters(stmt, self._conditions(query)))

    @staticmethod
    def _conditions(query: UserQuery) -> list:
        if query.is_active is None:
            return []
        return [users.c.is_active.is_(query.is_active)]

    async def update_by_id(self, id: int, data: UserUpdate) -> UserResponse | None:
        """Write only the fields the caller set. A new password is re-hashed."""
        changes = data.model_dump(exclude_unset=True)
        password = changes.pop("password", None)
        if password is not None:
            changes["password_hash"] = hash_password(password)
        row = await self._update_row(id, changes)
        return self._format(row) if row else None

    async def delete_by_id(self, id: int) -> bool:
        return await self._soft_delete(id)

    async def update_last_login(self, id: int) -> bool:
        row = await self._fetch_one(
            update(users)
            .where(users.c.id == id)
            .values(last_login_at=func.now(), updated_at=func.now())
            .returning(users.c.id)
        )
        return row is not None

    async def authenticate(self, username: str, password: str) -> UserResponse | None:
        """Active user with a matching password, with last_login_at stamped. None otherwise."""
        row = await self._fetch_one(
            select(users.c.id, users.c.password_hash).where(
                users.c.username == username, users.c.is_active.is_(True)
            )
        )
        if not row or not verify_password(password, row["password_hash"]):
            return None
        stamped: Row | None = await self._fetch_one(
            update(users)
            .where(users.c.id == row["id"])
            .values(last_login_at=func.now(), updated_at=func.now())
            .returning(*users.c)
        )
        return self._format(stamped) if stamped else None

    async def is_username_exists(self, username: str, exclude_id: int | None = None) -> bool:
        # Usernames stay reserved after deactivation
        return await self._exists("username", username, exclude_id, active_only=False)

    async def is_email_exists(self, email: str, exclude_id: int | None = None) -> bool:
        return await self._exists("email", email, exclude_id, active_only=False)
