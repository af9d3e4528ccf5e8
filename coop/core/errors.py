"""
errors.py

회비 도메인 공통 예외 정의 파일.

service 계층은 HTTP를 모르는 상태로 이 예외들만 발생시키고,
라우터가 status_code를 읽어 HTTPException으로 변환한다.

- ValidationError     : 잘못된 회비 규칙 입력 (400)
- NotFoundError       : 규칙 / 청구 / 회원 없음 (404)
- InvalidStateError   : 허용되지 않는 상태 전이 (409)
- ConcurrencyConflict : 동일 청구 키 중복 insert 경합 (409)
                        생성 로직 내부에서 skip으로 처리되어 호출 측에 노출되지 않음

"""


class FeeError(Exception):
    status_code = 400


class ValidationError(FeeError, ValueError):
    status_code = 400


class NotFoundError(FeeError):
    status_code = 404


class InvalidStateError(FeeError):
    status_code = 409


class ConcurrencyConflict(FeeError):
    status_code = 409
