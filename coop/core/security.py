"""
security.py

JWT Access Token 생성/검증을 담당하는 보안 유틸리티 모음.

로그인/회원가입 화면은 이 서비스의 범위 밖이며,
여기서는 포털이 발급한 Bearer 토큰을 검증하는 데 필요한
저수준(low-level) 기능만 제공한다.

설계 원칙:
- 토큰 생성 로직을 공통 함수로 통합하여 중복 제거
- 시간 기반(exp) 만료는 UTC 기준으로 처리
- access 타입 토큰만 API 인증에 사용

관련 파일:
- coop.core.config        : JWT 시크릿 키 및 만료 설정
- coop.core.deps          : 토큰을 실제로 검증하는 인증 의존성

"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from coop.core.config import settings


"""
Access Token 생성 함수

- subject(sub): 사용자 식별자(user_id)
- type: access
- exp: 만료 시각 (UTC timestamp)

"""

def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {
        "sub": subject,
        "type": "access",
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


"""
Access Token 디코딩 함수

- 서명 / 만료 검증은 jose가 수행
- refresh 등 다른 타입 토큰은 거부
- subject(user_id) 문자열 반환, 유효하지 않으면 JWTError 발생

"""

def decode_access_token(token: str) -> str:
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") and payload.get("type") != "access":
        raise JWTError("Not an access token")
    sub = payload.get("sub")
    if not sub:
        raise JWTError("Missing subject")
    return sub
