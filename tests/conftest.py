from typing import List, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from memorial.api import deps
from memorial.clients.media import UploadedImage
from memorial.core.config import Settings, get_settings
from memorial.core.errors import DependencyFailure
from memorial.db.base import Base, get_db
from memorial.db.session import create_session_factory
from memorial.main import app
from memorial.models import approver, message  # noqa: F401
from memorial.schemas.notification import ModerationNotice
from memorial.security.session import SessionCodec
from memorial.security.tokens import ModerationTokenIssuer

TEST_SECRET = "test-session-secret-0123456789abcdef"
BOOTSTRAP_SECRET = "open-sesame"


class FakeCaptcha:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.tokens: List[str] = []

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        self.tokens.append(token)
        return self.ok


class FakeMediaHost:
    def __init__(self):
        self.uploads: List[bytes] = []
        self.deleted: List[str] = []
        self.fail_upload = False
        self.fail_delete = False

    async def upload(self, data: bytes, content_type: str) -> UploadedImage:
        if self.fail_upload:
            raise DependencyFailure("media", "upload refused")
        self.uploads.append(data)
        public_id = f"memorial/{len(self.uploads)}"
        return UploadedImage(url=f"https://img.example/{public_id}.png", public_id=public_id)

    async def delete(self, public_id: str) -> None:
        if self.fail_delete:
            raise DependencyFailure("media", "destroy refused")
        self.deleted.append(public_id)


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.notices: List[ModerationNotice] = []

    async def notify(self, notice: ModerationNotice) -> None:
        if self.fail:
            raise DependencyFailure("email", "smtp is down")
        self.notices.append(notice)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        SESSION_SECRET=TEST_SECRET,
        BOOTSTRAP_SECRET=BOOTSTRAP_SECRET,
        APP_BASE_URL="http://testserver",
        ADMIN_EMAIL=None,
    )


@pytest.fixture
def codec() -> SessionCodec:
    return SessionCodec(TEST_SECRET)


@pytest.fixture
def token_issuer() -> ModerationTokenIssuer:
    return ModerationTokenIssuer()


@pytest.fixture
def captcha() -> FakeCaptcha:
    return FakeCaptcha()


@pytest.fixture
def media() -> FakeMediaHost:
    return FakeMediaHost()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'memorial-test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, test_settings, codec, token_issuer, captcha, media, notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[deps.get_session_codec] = lambda: codec
    app.dependency_overrides[deps.get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[deps.get_captcha] = lambda: captcha
    app.dependency_overrides[deps.get_media_host] = lambda: media
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http

    app.dependency_overrides.clear()
