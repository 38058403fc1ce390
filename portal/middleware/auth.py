from functools import wraps
from flask import request, current_app
from portal.exceptions import AuthenticationError, AuthorizationError, InvalidCredentials, ServiceException

import jwt
import logging

from datetime import datetime, timedelta, timezone
from portal.db.models import Account
from portal.db.models.role import AccessLevel
from portal.utils.validators import normalize_email


logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'

ACCESS_PRIORITY = {
    'admin': 3,
    'broker_admin': 2,
    'agent': 1
}


class IdentityProvider:
    """Answers "who is this" for an email/password pair and nothing else.

    Account status is not considered here; callers decide what an
    inactive identity may do.
    """

    @staticmethod
    def verify(email: str, password: str) -> int:
        account = Account.query.filter_by(email=normalize_email(email)).first()
        if account is None or not account.check_password(password):
            logger.info("Credential check failed for %s", email)
            raise InvalidCredentials()
        return account.id


class AuthService:
    @staticmethod
    def create_access_token(account: Account) -> str:
        expires = timedelta(hours=current_app.config['JWT_EXPIRES_HOURS'])
        payload = {
            'account_id': account.id,
            'email': account.email,
            'access_level': account.access_level,
            'broker_id': account.broker_id,
            'exp': datetime.now(timezone.utc) + expires
        }
        return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=JWT_ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> dict:
        try:
            return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired", "TOKEN_EXPIRED")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token", "INVALID_TOKEN")

    @staticmethod
    def check_access(access_level: str, required_level: str) -> bool:
        """
        Check if the caller's access level has sufficient priority to reach
        a resource that requires the specified level.
        """
        user_priority = ACCESS_PRIORITY.get(access_level, 0)
        required_priority = ACCESS_PRIORITY.get(required_level, 0)

        return user_priority >= required_priority


def requires_auth(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None
        auth_header = request.headers.get('Authorization')

        if auth_header:
            try:
                token = auth_header.split(" ")[1]  # Bearer <token>
            except IndexError:
                raise AuthenticationError("Invalid token format", "INVALID_TOKEN_FORMAT")

        if not token:
            raise AuthenticationError("Token is missing", "TOKEN_MISSING")

        try:
            payload = AuthService.verify_token(token)
        except ServiceException as e:
            raise AuthenticationError(str(e), e.error_code)

        request.user = payload
        return f(*args, **kwargs)

    return decorated


def requires_role(required_level):
    if isinstance(required_level, AccessLevel):
        required_level = required_level.value

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not hasattr(request, 'user'): # only used after requires_auth
                raise AuthenticationError("Authentication required", "AUTH_REQUIRED")

            access_level = request.user.get('access_level')
            if not access_level:
                raise AuthorizationError("User has no role assigned", "NO_ROLE_ASSIGNED")

            if not AuthService.check_access(access_level, required_level):
                raise AuthorizationError(
                    f"Access denied. Required role: {required_level}",
                    "INSUFFICIENT_ROLE"
                )

            return f(*args, **kwargs)
        return decorated
    return decorator
