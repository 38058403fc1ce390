from datetime import datetime, timedelta, timezone

from flask import Blueprint, request, jsonify
from portal.services.invite_service import InviteService
from portal.services.user_service import UserService
from portal.exceptions import ValidationError
from portal.middleware.auth import requires_auth, requires_role
from portal.db.models.role import AccessLevel
from portal.routes.serializers import serialize_invitation, serialize_notification
from portal.utils.clock import utcnow
from portal.utils.validators import parse_id


invite_bp = Blueprint('invite', __name__)


def _requested_ttl(data):
    """ttl_seconds wins over expires_at; neither means the configured default."""
    if data.get('ttl_seconds') is not None:
        try:
            return timedelta(seconds=int(data['ttl_seconds']))
        except (TypeError, ValueError):
            raise ValidationError("ttl_seconds must be an integer", "INVALID_FIELD_TYPE")
        except OverflowError:
            raise ValidationError("ttl_seconds out of range", "INVALID_TTL")

    if data.get('expires_at'):
        try:
            expires_at = datetime.fromisoformat(str(data['expires_at']).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError("expires_at must be an ISO 8601 timestamp", "INVALID_FIELD_TYPE")
        if expires_at.tzinfo is not None:
            expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
        return expires_at - utcnow()

    return None


@invite_bp.route('', methods=['POST'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def create_invite():
    """Create an invitation and email its registration link"""
    data = request.get_json(silent=True) or {}
    email = data.get('email')

    if not email:
        raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")

    inviter = UserService.get_current_user(request.user['account_id'])
    issued = InviteService.issue(
        inviter,
        email,
        role_id=parse_id(data.get('role_id'), 'role_id'),
        broker_id=parse_id(data.get('broker_id'), 'broker_id'),
        message=data.get('message'),
        ttl=_requested_ttl(data)
    )

    return jsonify({
        'message': 'Invitation created successfully' if issued.notified
                   else 'Invitation created but the email could not be sent',
        'invitation': serialize_invitation(issued.invitation),
        'token': issued.token,
        'notification': serialize_notification(issued)
    }), 201 if issued.notified else 207


@invite_bp.route('/lookup', methods=['GET'])
def lookup_invite():
    """Public: resolve a token so the registration form can be pre-filled"""
    token = request.args.get('token')
    if not token:
        raise ValidationError("Token is required", "MISSING_TOKEN")

    invitation = InviteService.fetch(token)
    return jsonify(serialize_invitation(invitation)), 200


@invite_bp.route('', methods=['GET'])
def get_invites():
    """Resolve a token when one is given, otherwise list invitations"""
    if 'token' in request.args:
        return lookup_invite()
    return list_invites()


@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def list_invites():
    """List outstanding invitations"""
    include_expired = request.args.get('include_expired', '').lower() == 'true'
    user = UserService.get_current_user(request.user['account_id'])
    invites = InviteService.list_invites(user, include_expired)

    return jsonify({
        'invitations': [serialize_invitation(invite) for invite in invites]
    }), 200


@invite_bp.route('/<int:invitation_id>', methods=['DELETE'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def revoke_invite(invitation_id):
    user = UserService.get_current_user(request.user['account_id'])
    InviteService.revoke(user, invitation_id)
    return jsonify({'success': True}), 200


@invite_bp.route('/<int:invitation_id>/resend', methods=['POST'])
@requires_auth
@requires_role(AccessLevel.BROKER_ADMIN)
def resend_invite(invitation_id):
    """Send the invitation email again with a fresh link"""
    data = request.get_json(silent=True) or {}
    background = bool(data.get('background', False))

    user = UserService.get_current_user(request.user['account_id'])
    issued = InviteService.resend(user, invitation_id, background=background)

    if issued is None:
        return jsonify({'message': 'Invitation queued for delivery'}), 202

    return jsonify({
        'invitation': serialize_invitation(issued.invitation),
        'token': issued.token,
        'notification': serialize_notification(issued)
    }), 200 if issued.notified else 207
