from flask import Blueprint, request, jsonify
from portal.services.loan_service import LoanService
from portal.services.document_service import DocumentService
from portal.services.user_service import UserService
from portal.exceptions import ValidationError
from portal.middleware.auth import requires_auth
from portal.routes.serializers import serialize_document, serialize_loan_request
from portal.utils.validators import parse_id

loan_bp = Blueprint('loan', __name__)


@loan_bp.route('', methods=['POST'])
@requires_auth
def create_request():
    """Create a new loan request"""
    data = request.get_json(silent=True) or {}
    if 'broker_id' in data:
        data['broker_id'] = parse_id(data['broker_id'], 'broker_id')

    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.create_request(user, data)
    return jsonify({
        'message': 'Loan request created successfully',
        'loan_request': serialize_loan_request(loan)
    }), 201


@loan_bp.route('', methods=['GET'])
@requires_auth
def list_requests():
    """List loan requests that are not in trash"""
    user = UserService.get_current_user(request.user['account_id'])
    loans = LoanService.list_requests(user, request.args.get('status'))
    return jsonify({'loan_requests': [serialize_loan_request(loan) for loan in loans]}), 200


@loan_bp.route('/trash', methods=['GET'])
@requires_auth
def list_trash():
    user = UserService.get_current_user(request.user['account_id'])
    loans = LoanService.list_trash(user)
    return jsonify({'loan_requests': [serialize_loan_request(loan) for loan in loans]}), 200


@loan_bp.route('/<int:loan_id>', methods=['GET'])
@requires_auth
def get_request(loan_id):
    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.get_request(user, loan_id)
    return jsonify(serialize_loan_request(loan)), 200


@loan_bp.route('/<int:loan_id>', methods=['PUT'])
@requires_auth
def update_request(loan_id):
    data = request.get_json(silent=True) or {}
    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.update_request(user, loan_id, data)
    return jsonify(serialize_loan_request(loan)), 200


@loan_bp.route('/<int:loan_id>/status', methods=['PATCH'])
@requires_auth
def set_status(loan_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        raise ValidationError("Missing required fields", "MISSING_REQUIRED_FIELDS")

    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.set_status(user, loan_id, status)
    return jsonify(serialize_loan_request(loan)), 200


@loan_bp.route('/<int:loan_id>', methods=['DELETE'])
@requires_auth
def trash_request(loan_id):
    """Move a loan request to trash"""
    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.trash_request(user, loan_id)
    return jsonify({
        'message': 'Loan request moved to trash',
        'loan_request': serialize_loan_request(loan)
    }), 200


@loan_bp.route('/<int:loan_id>/restore', methods=['POST'])
@requires_auth
def restore_request(loan_id):
    user = UserService.get_current_user(request.user['account_id'])
    loan = LoanService.restore_request(user, loan_id)
    return jsonify({
        'message': 'Loan request restored',
        'loan_request': serialize_loan_request(loan)
    }), 200


@loan_bp.route('/<int:loan_id>/purge', methods=['DELETE'])
@requires_auth
def purge_request(loan_id):
    """Delete a trashed loan request permanently"""
    user = UserService.get_current_user(request.user['account_id'])
    LoanService.purge_request(user, loan_id)
    return jsonify({'success': True}), 200


@loan_bp.route('/<int:loan_id>/documents', methods=['GET'])
@requires_auth
def list_documents(loan_id):
    user = UserService.get_current_user(request.user['account_id'])
    documents = DocumentService.list_documents(user, loan_id)
    return jsonify({'documents': [serialize_document(d) for d in documents]}), 200


@loan_bp.route('/<int:loan_id>/documents', methods=['POST'])
@requires_auth
def upload_document(loan_id):
    """Upload a document, or a new version of one"""
    file_storage = request.files.get('file')
    if file_storage is None:
        raise ValidationError("A file is required", "MISSING_FILE")

    user = UserService.get_current_user(request.user['account_id'])
    document = DocumentService.upload(
        user,
        loan_id,
        file_storage,
        category=request.form.get('category'),
        name=request.form.get('name'),
        section=request.form.get('section') or None,
        document_id=parse_id(request.form.get('document_id'), 'document_id')
    )
    return jsonify({
        'message': 'Document uploaded successfully',
        'document': serialize_document(document)
    }), 201
