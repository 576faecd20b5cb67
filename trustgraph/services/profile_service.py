from flask import current_app

from trustgraph.models import db, get_now
from trustgraph.services.errors import ServiceError

ALLOWED_PROFILE_FIELDS = ('full_name', 'company_name', 'company_size', 'role')
MAX_FIELD_LENGTH = 200
SELF_DELETE_REASON = 'user_self_delete'


class ProfileService:
    @staticmethod
    def update_profile(user, payload):
        updates = {}
        for field in ALLOWED_PROFILE_FIELDS:
            if field not in payload:
                continue
            value = payload[field]
            if not isinstance(value, str):
                raise ServiceError(f"{field} must be a string")
            if len(value) > MAX_FIELD_LENGTH:
                raise ServiceError(f"{field} must be at most {MAX_FIELD_LENGTH} characters")
            updates[field] = value

        if not updates:
            raise ServiceError('No valid fields to update')

        for field, value in updates.items():
            setattr(user, field, value)
        db.session.commit()
        return user

    @staticmethod
    def delete_account(user, confirmation_name):
        """Soft delete: the profile is suspended, data is kept."""
        if not confirmation_name or not isinstance(confirmation_name, str):
            raise ServiceError('Confirmation name is required')

        valid_targets = [t for t in (user.company_name, user.email) if t]
        if confirmation_name not in valid_targets:
            raise ServiceError(
                'Confirmation does not match. Please type your organisation name or email exactly.'
            )

        user.suspended_at = get_now()
        user.suspended_reason = SELF_DELETE_REASON
        db.session.commit()
        current_app.logger.info(f"User {user.id} deleted their account")
        return user
