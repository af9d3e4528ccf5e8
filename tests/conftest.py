import os

# 설정 로드 전에 테스트 기본값 주입 (.env / 환경 변수가 있으면 그 값을 사용)
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_coop.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coop.main import app as fastapi_app
from coop.core.config import settings
from coop.core.deps import get_db
from coop.db.base import Base
from coop.db.session import engine_kwargs

# ✅ 모델 import (Base.metadata에 테이블 등록)
import coop.models  # noqa: F401


TEST_DB_URL = settings.TEST_DATABASE_URL or os.getenv("TEST_DATABASE_URL") or "sqlite:///./test_coop.db"

engine = create_engine(TEST_DB_URL, pool_pre_ping=True, **engine_kwargs(TEST_DB_URL))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """테스트 전체 시작/종료 때만 스키마 생성/삭제"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """각 테스트마다 데이터 초기화 (테이블은 유지, row만 삭제)"""
    # FK 의존성 역순으로 삭제 (SQLite / PostgreSQL 공통)
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def session_factory():
    """동시 실행 시나리오처럼 세션을 여러 개 열어야 하는 테스트용"""
    return TestingSessionLocal


@pytest.fixture()
def db():
    """테스트에서 직접 DB 조작할 때 쓰는 세션"""
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client():
    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()
