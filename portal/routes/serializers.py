"""JSON shapes shared by several blueprints.

Password hashes and invitation token hashes never leave through here.
"""


def _iso(value):
    return value.isoformat() if value else None


def serialize_broker(broker):
    return {
        'id': broker.id,
        'company_name': broker.company_name,
        'email': broker.email,
        'phone': broker.phone,
        'address': broker.address,
        'website': broker.website,
        'description': broker.description,
        'status': broker.status,
        'created_at': _iso(broker.created_at),
        'updated_at': _iso(broker.updated_at)
    }


def serialize_broker_ref(broker):
    if broker is None:
        return None
    return {'id': broker.id, 'company_name': broker.company_name, 'email': broker.email}


def serialize_role(role):
    return {
        'id': role.id,
        'name': role.name,
        'description': role.description,
        'permissions': role.permissions,
        'access_level': role.access_level,
        'broker_id': role.broker_id,
        'created_at': _iso(role.created_at)
    }


def serialize_account(account):
    return {
        'id': account.id,
        'email': account.email,
        'first_name': account.first_name,
        'last_name': account.last_name,
        'phone': account.phone,
        'status': account.status,
        'access_level': account.access_level,
        'role_id': account.role_id,
        'broker': serialize_broker_ref(account.broker),
        'last_login_at': _iso(account.last_login_at),
        'created_at': _iso(account.created_at),
        'updated_at': _iso(account.updated_at)
    }


def serialize_agent(agent):
    return {
        'id': agent.id,
        'account_id': agent.account_id,
        'broker_id': agent.broker_id,
        'email': agent.account.email,
        'first_name': agent.account.first_name,
        'last_name': agent.account.last_name,
        'phone': agent.phone,
        'license_number': agent.license_number,
        'status': agent.status,
        'created_at': _iso(agent.created_at)
    }


def serialize_invitation(invitation):
    return {
        'id': invitation.id,
        'email': invitation.email,
        'role_id': invitation.role_id,
        'role': invitation.role.name if invitation.role else None,
        'broker_id': invitation.broker_id,
        'broker': serialize_broker_ref(invitation.broker),
        'account_id': invitation.account_id,
        'message': invitation.message,
        'expires_at': _iso(invitation.expires_at),
        'last_sent_at': _iso(invitation.last_sent_at),
        'created_at': _iso(invitation.created_at)
    }


def serialize_notification(issued):
    if issued.notified:
        return {'sent': True}
    return {
        'sent': False,
        'error_code': issued.delivery_error.error_code,
        'message': 'Invitation saved but the email could not be sent; retry the notification only'
    }


def serialize_loan_request(loan):
    return {
        'id': loan.id,
        'broker_id': loan.broker_id,
        'created_by_id': loan.created_by_id,
        'borrower_name': loan.borrower_name,
        'borrower_email': loan.borrower_email,
        'loan_amount': str(loan.loan_amount),
        'loan_type': loan.loan_type,
        'loan_purpose': loan.loan_purpose,
        'property_address': loan.property_address,
        'status': loan.status,
        'deleted_at': _iso(loan.deleted_at),
        'created_at': _iso(loan.created_at),
        'updated_at': _iso(loan.updated_at)
    }


def serialize_comment(comment):
    return {
        'id': comment.id,
        'author_id': comment.author_id,
        'author': (comment.author.full_name or comment.author.email) if comment.author else None,
        'content': comment.content,
        'created_at': _iso(comment.created_at)
    }


def serialize_document(document):
    return {
        'id': document.id,
        'loan_request_id': document.loan_request_id,
        'category': document.category,
        'name': document.name,
        'section': document.section,
        'status': document.status,
        'versions': [{
            'id': v.id,
            'url': v.url,
            'file_name': v.file_name,
            'size': v.size,
            'content_type': v.content_type,
            'uploaded_by_id': v.uploaded_by_id,
            'uploaded_at': _iso(v.uploaded_at)
        } for v in document.versions],
        'comments': [serialize_comment(c) for c in document.comments],
        'updated_at': _iso(document.updated_at)
    }
