"""
Tests for staff token validation.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.core.auth import STAFF_ROLE, get_current_staff_user
from app.core.security import create_access_token, decode_token


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestTokens:
    def test_round_trip_claims(self):
        staff_id = str(uuid4())
        token = create_access_token(staff_id, email="registrar@ptc.edu.ph", role=STAFF_ROLE)

        claims = decode_token(token)

        assert claims["sub"] == staff_id
        assert claims["role"] == STAFF_ROLE
        assert claims["type"] == "access"

    def test_expired_token_is_rejected(self):
        token = create_access_token(
            str(uuid4()),
            email="registrar@ptc.edu.ph",
            role=STAFF_ROLE,
            expires_delta=timedelta(seconds=-1),
        )

        assert decode_token(token) is None

    def test_garbage_is_rejected(self):
        assert decode_token("not.a.jwt") is None


class TestGetCurrentStaffUser:
    @pytest.mark.asyncio
    async def test_staff_token_is_accepted(self):
        staff_id = uuid4()
        token = create_access_token(
            str(staff_id), email="registrar@ptc.edu.ph", role=STAFF_ROLE, name="Registrar"
        )

        staff = await get_current_staff_user(_credentials(token))

        assert staff.id == staff_id
        assert staff.name == "Registrar"

    @pytest.mark.asyncio
    async def test_other_role_is_forbidden(self):
        token = create_access_token(str(uuid4()), email="student@ptc.edu.ph", role="student")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_staff_user(_credentials(token))

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error"] == "STAFF_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    async def test_invalid_token_is_unauthorized(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_staff_user(_credentials("forged"))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_uuid_subject_is_unauthorized(self):
        token = create_access_token("registrar", email="registrar@ptc.edu.ph", role=STAFF_ROLE)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_staff_user(_credentials(token))

        assert exc_info.value.detail["error"] == "INVALID_TOKEN_CLAIMS"
