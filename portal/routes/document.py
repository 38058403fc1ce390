from flask import Blueprint, request, jsonify, send_file
from portal.services.document_service import DocumentService
from portal.services.storage_service import StorageService
from portal.services.user_service import UserService
from portal.db.models import DocumentVersion
from portal.exceptions import NotFoundError, ValidationError
from portal.middleware.auth import requires_auth
from portal.routes.serializers import serialize_comment, serialize_document

document_bp = Blueprint('document', __name__)
files_bp = Blueprint('files', __name__)


@document_bp.route('/<int:document_id>', methods=['GET'])
@requires_auth
def get_document(document_id):
    user = UserService.get_current_user(request.user['account_id'])
    document = DocumentService.get_document(user, document_id)
    return jsonify(serialize_document(document)), 200


@document_bp.route('/<int:document_id>/review', methods=['POST'])
@requires_auth
def review_document(document_id):
    """Approve or reject a document"""
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")

    user = UserService.get_current_user(request.user['account_id'])
    document = DocumentService.review(user, document_id, status, data.get('comment'))
    return jsonify(serialize_document(document)), 200


@document_bp.route('/<int:document_id>/comments', methods=['POST'])
@requires_auth
def add_comment(document_id):
    data = request.get_json(silent=True) or {}
    user = UserService.get_current_user(request.user['account_id'])
    comment = DocumentService.add_comment(user, document_id, data.get('content'))
    return jsonify(serialize_comment(comment)), 201


@files_bp.route('/<path:key>', methods=['GET'])
@requires_auth
def download_file(key):
    """Stream a stored document version"""
    version = DocumentVersion.query.filter_by(storage_key=key).first()
    if version is None:
        raise NotFoundError("File not found", "FILE_NOT_FOUND")

    user = UserService.get_current_user(request.user['account_id'])
    # access follows the owning loan request
    DocumentService.get_document(user, version.document_id)

    path = StorageService.store().open_path(key)
    return send_file(path, mimetype=version.content_type, download_name=version.file_name)
