from flask import Blueprint, request, jsonify
from portal.services.role_service import RoleService
from portal.middleware.auth import requires_auth, requires_role
from portal.db.models.role import AccessLevel
from portal.routes.serializers import serialize_role
from portal.utils.validators import parse_id

role_bp = Blueprint('role', __name__)


@role_bp.route('', methods=['GET'])
@requires_auth
def list_roles():
    broker_id = parse_id(request.args.get('broker_id'), 'broker_id')
    if request.user.get('access_level') != AccessLevel.ADMIN.value:
        broker_id = request.user.get('broker_id')

    roles = RoleService.list_roles(broker_id)
    return jsonify({'roles': [serialize_role(r) for r in roles]}), 200


@role_bp.route('', methods=['POST'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def create_role():
    """Create a custom role"""
    data = request.get_json(silent=True) or {}
    role = RoleService.create_role(
        data.get('name'),
        data.get('permissions'),
        description=data.get('description'),
        access_level=data.get('access_level'),
        broker_id=parse_id(data.get('broker_id'), 'broker_id')
    )
    return jsonify({
        'message': 'Role created successfully',
        'role': serialize_role(role)
    }), 201


@role_bp.route('/<int:role_id>', methods=['PUT'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def update_role(role_id):
    data = request.get_json(silent=True) or {}
    role = RoleService.update_role(role_id, data)
    return jsonify(serialize_role(role)), 200


@role_bp.route('/<int:role_id>', methods=['DELETE'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def delete_role(role_id):
    RoleService.delete_role(role_id)
    return jsonify({'success': True}), 200
