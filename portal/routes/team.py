from flask import Blueprint, request, jsonify
from portal.services.team_service import TeamService
from portal.services.user_service import UserService
from portal.exceptions import ValidationError
from portal.middleware.auth import requires_auth, requires_role
from portal.db.models.role import AccessLevel
from portal.routes.serializers import serialize_agent, serialize_invitation, serialize_notification
from portal.utils.validators import parse_id

team_bp = Blueprint('team', __name__)


@team_bp.route('', methods=['GET'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def list_agents():
    """List agents, optionally for one broker"""
    broker_id = parse_id(request.args.get('broker_id'), 'broker_id')
    user = UserService.get_current_user(request.user['account_id'])
    agents = TeamService.list_agents(user, broker_id)
    return jsonify({'agents': [serialize_agent(a) for a in agents]}), 200


@team_bp.route('', methods=['POST'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def create_agent():
    """Create a pending agent and invite them"""
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    broker_id = parse_id(data.get('broker_id'), 'broker_id')

    if not all([email, broker_id]):
        raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")

    user = UserService.get_current_user(request.user['account_id'])
    agent, issued = TeamService.create_agent(
        user,
        email,
        broker_id,
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
        phone=data.get('phone'),
        license_number=data.get('license_number'),
        role_id=parse_id(data.get('role_id'), 'role_id'),
        message=data.get('message')
    )

    return jsonify({
        'message': 'Agent created successfully',
        'agent': serialize_agent(agent),
        'invitation': serialize_invitation(issued.invitation),
        'notification': serialize_notification(issued)
    }), 201 if issued.notified else 207


@team_bp.route('/<int:agent_id>', methods=['GET'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def get_agent(agent_id):
    user = UserService.get_current_user(request.user['account_id'])
    agent = TeamService.get_agent(user, agent_id)
    return jsonify(serialize_agent(agent)), 200


@team_bp.route('/<int:agent_id>/status', methods=['PATCH'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def update_agent_status(agent_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")

    user = UserService.get_current_user(request.user['account_id'])
    agent = TeamService.update_agent_status(user, agent_id, status)
    return jsonify(serialize_agent(agent)), 200


@team_bp.route('/<int:agent_id>', methods=['DELETE'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def delete_agent(agent_id):
    """Delete an agent together with their account"""
    user = UserService.get_current_user(request.user['account_id'])
    TeamService.delete_agent(user, agent_id)
    return jsonify({'success': True}), 200
