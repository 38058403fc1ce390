from flask import Blueprint, request, jsonify
from portal.services.broker_service import BrokerService
from portal.middleware.auth import requires_auth, requires_role
from portal.db.models.role import AccessLevel
from portal.exceptions import AuthorizationError
from portal.routes.serializers import serialize_broker

broker_bp = Blueprint('broker', __name__)


@broker_bp.route('', methods=['GET'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def list_brokers():
    include_inactive = request.args.get('include_inactive', 'true').lower() == 'true'
    brokers = BrokerService.list_brokers(include_inactive)
    return jsonify({'brokers': [serialize_broker(b) for b in brokers]}), 200


@broker_bp.route('', methods=['POST'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def create_broker():
    """Create a new broker company"""
    data = request.get_json(silent=True) or {}
    broker = BrokerService.create_broker(data)
    return jsonify({
        'message': 'Broker created successfully',
        'broker': serialize_broker(broker)
    }), 201


@broker_bp.route('/<int:broker_id>', methods=['GET'])
@requires_auth
def get_broker(broker_id):
    """Get broker details"""
    # Non-admins may only read their own broker
    if request.user.get('access_level') != AccessLevel.ADMIN.value and request.user.get('broker_id') != broker_id:
        raise AuthorizationError("Access denied", "BROKER_ACCESS_DENIED")

    broker = BrokerService.get_broker(broker_id)
    return jsonify(serialize_broker(broker)), 200


@broker_bp.route('/<int:broker_id>', methods=['PUT'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def update_broker(broker_id):
    data = request.get_json(silent=True) or {}
    broker = BrokerService.update_broker(broker_id, data)
    return jsonify(serialize_broker(broker)), 200


@broker_bp.route('/<int:broker_id>', methods=['DELETE'])
@requires_auth
@requires_role(AccessLevel.ADMIN)
def delete_broker(broker_id):
    BrokerService.delete_broker(broker_id)
    return jsonify({'success': True}), 200
