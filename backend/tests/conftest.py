"""Pytest configuration shared across backend tests."""

import os
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

# Settings are read once at import time; pin them before importing taskhub.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-0123456789-0123456789"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskhub import models  # noqa: E402,F401
from taskhub.db.base import Base  # noqa: E402
from taskhub.db.session import get_db_session  # noqa: E402
from taskhub.main import create_app  # noqa: E402
from taskhub.models.project import (  # noqa: E402
    Board,
    BoardColumn,
    Project,
    ProjectMember,
    Task,
)
from taskhub.models.user import User  # noqa: E402
from taskhub.security import create_access_token, hash_password  # noqa: E402

DEFAULT_COLUMNS = ("К выполнению", "В работе", "На проверке", "Выполнено")
BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


class Seeder:
    """Writes fixtures straight through the ORM, one commit per call."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self._counter = 0

    async def user(
        self,
        name: str = "Alice",
        role: str = "user",
        approval_status: str = "approved",
        password: str = "secret123",
        email: str | None = None,
    ) -> User:
        self._counter += 1
        user = User(
            email=email or f"user{self._counter}@example.com",
            name=name,
            password_hash=hash_password(password),
            role=role,
            approval_status=approval_status,
        )
        async with self.session_maker() as session:
            session.add(user)
            await session.commit()
        return user

    async def project(self, creator: User, members: Sequence[User] = ()) -> Project:
        project = Project(name="Launch", creator_id=creator.id)
        async with self.session_maker() as session:
            session.add(project)
            await session.flush()
            session.add(ProjectMember(project_id=project.id, user_id=creator.id, role="owner"))
            for member in members:
                session.add(ProjectMember(project_id=project.id, user_id=member.id, role="member"))
            await session.commit()
        return project

    async def board(
        self,
        project: Project,
        titles: Sequence[str] = DEFAULT_COLUMNS,
    ) -> tuple[Board, list[BoardColumn]]:
        board = Board(project_id=project.id, name="Main board", is_default=True)
        async with self.session_maker() as session:
            session.add(board)
            await session.flush()
            columns = [
                BoardColumn(board_id=board.id, title=title, position=index)
                for index, title in enumerate(titles)
            ]
            session.add_all(columns)
            await session.commit()
        return board, columns

    async def task(
        self,
        column: BoardColumn,
        board: Board,
        reporter: User,
        title: str = "Task",
        status: str = "todo",
        updated_at: datetime | None = None,
        created_at: datetime | None = None,
        position: int = 0,
        is_archived: bool = False,
    ) -> Task:
        stamp = updated_at or BASE_TIME
        task = Task(
            project_id=board.project_id,
            board_id=board.id,
            column_id=column.id,
            title=title,
            status=status,
            position=position,
            reporter_id=reporter.id,
            is_archived=is_archived,
            created_at=created_at or stamp,
            updated_at=stamp,
        )
        async with self.session_maker() as session:
            session.add(task)
            await session.commit()
        return task

    async def done_tasks(
        self,
        column: BoardColumn,
        board: Board,
        reporter: User,
        count: int,
    ) -> list[Task]:
        """``count`` done tasks, the first one oldest, one minute apart."""
        return [
            await self.task(
                column,
                board,
                reporter,
                title=f"Done {index}",
                status="done",
                updated_at=BASE_TIME + timedelta(minutes=index),
                position=index,
            )
            for index in range(count)
        ]

    async def get_task(self, task_id) -> Task | None:
        async with self.session_maker() as session:
            return await session.get(Task, task_id)


@dataclass
class BoardFixture:
    user: User
    project: Project
    board: Board
    todo: BoardColumn
    in_progress: BoardColumn
    review: BoardColumn
    done: BoardColumn

    @property
    def headers(self) -> dict[str, str]:
        return auth_headers(self.user)


@pytest_asyncio.fixture
async def session_maker(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def seed(session_maker) -> Seeder:
    return Seeder(session_maker)


@pytest.fixture
def app(session_maker):
    app = create_app()

    async def _override_get_db_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_get_db_session
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def board_fixture(seed: Seeder) -> BoardFixture:
    user = await seed.user()
    project = await seed.project(user)
    board, columns = await seed.board(project)
    todo, in_progress, review, done = columns
    return BoardFixture(
        user=user,
        project=project,
        board=board,
        todo=todo,
        in_progress=in_progress,
        review=review,
        done=done,
    )
