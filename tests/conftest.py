import os
import tempfile

import pytest

# Point the app at throwaway storage before gym_posture.config is imported
_TEST_DIR = tempfile.mkdtemp(prefix="gym-posture-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.sqlite3"
os.environ["STORAGE_DIR"] = os.path.join(_TEST_DIR, "storage")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_SIGNING_SECRET"] = "test-signing-secret"
os.environ["STORAGE_PUBLIC_READ"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://test"


@pytest.fixture(autouse=True, scope="session")
def setup_test_db():
    import asyncio

    # Disable API key auth and the OpenAI call for tests
    from gym_posture.config import settings
    settings.api_key = ""
    settings.openai_api_key = ""

    from gym_posture.database import init_db

    asyncio.run(init_db())
