from flask import Blueprint, request, jsonify
from portal.services.registration_service import RegistrationService
from portal.exceptions import ValidationError
from portal.routes.serializers import serialize_account
from portal.utils.validators import require_strings

registration_bp = Blueprint('registration', __name__)


@registration_bp.route('/complete-registration', methods=['POST'])
def complete_registration():
    """Consume an invitation token and activate the invited account"""
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    password = data.get('password')

    if not all([token, password]):
        raise ValidationError("Token and password are required", "MISSING_REQUIRED_FIELDS")
    require_strings(token=token, password=password)

    account = RegistrationService.complete(
        token,
        password,
        first_name=data.get('first_name'),
        last_name=data.get('last_name')
    )

    return jsonify({
        'user': serialize_account(account),
        'message': 'Registration completed successfully'
    }), 200
