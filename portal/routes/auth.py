from flask import Blueprint, request, jsonify
from portal.middleware.auth import requires_auth
from portal.services.registration_service import RegistrationService
from portal.services.user_service import UserService
from portal.exceptions import ValidationError
from portal.routes.serializers import serialize_account
from portal.utils.validators import require_strings

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    password = data.get('password')

    if not all([email, password]):
        raise ValidationError("Email and password are required", "MISSING_REQUIRED_FIELDS")
    require_strings(email=email, password=password)

    account, token = UserService.login(email, password)

    return jsonify({
        'user': serialize_account(account),
        'token': token
    }), 200


@auth_bp.route('/set-password', methods=['POST'])
def set_password():
    """Finish an invitation by choosing a password"""
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    password = data.get('password')

    if not all([token, password]):
        raise ValidationError("Token and password are required", "MISSING_REQUIRED_FIELDS")
    require_strings(token=token, password=password)

    RegistrationService.complete(token, password)
    return jsonify({'success': True}), 200


@auth_bp.route('/me', methods=['GET'])
@requires_auth
def get_current_user():
    account = UserService.get_current_user(request.user['account_id'])
    return jsonify(serialize_account(account)), 200
