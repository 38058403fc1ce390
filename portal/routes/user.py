from flask import Blueprint, request, jsonify
from portal.services.user_service import UserService
from portal.middleware.auth import requires_auth, requires_role
from portal.db.models.role import AccessLevel
from portal.routes.serializers import serialize_account
from portal.utils.validators import parse_id

user_bp = Blueprint('user', __name__)


@user_bp.route('', methods=['GET'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def list_users():
    broker_id = parse_id(request.args.get('broker_id'), 'broker_id')
    users = UserService.list_users(broker_id, request.args.get('status'))
    return jsonify({'users': [serialize_account(u) for u in users]}), 200


@user_bp.route('/<int:account_id>', methods=['GET'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def get_user(account_id):
    return jsonify(serialize_account(UserService.get_user_by_id(account_id))), 200


@user_bp.route('/<int:account_id>', methods=['PUT'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def update_user(account_id):
    data = request.get_json(silent=True) or {}
    changes = {
        'first_name': data.get('first_name'),
        'last_name': data.get('last_name'),
        'phone': data.get('phone'),
        'status': data.get('status'),
        'role_id': parse_id(data.get('role_id'), 'role_id'),
        'broker_id': parse_id(data.get('broker_id'), 'broker_id'),
    }
    account = UserService.update_user(account_id, changes)
    return jsonify(serialize_account(account)), 200


@user_bp.route('/<int:account_id>', methods=['DELETE'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def delete_user(account_id):
    admin = UserService.get_current_user(request.user['account_id'])
    UserService.delete_user(admin, account_id)
    return jsonify({'success': True}), 200
